from dataclasses import dataclass


@dataclass(frozen=True)
class TenantContext:
    """Caller identity every service call is scoped by."""

    organization_id: str
    user_id: str
    role: str = "TEACHER"
