import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ardn.core.context import TenantContext
from ardn.core.security import decode_access_token
from ardn.db.session import get_db
from ardn.models.organization import Organization
from ardn.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")

    token = credentials.credentials
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user_id = payload.get("sub")
    organization_id = payload.get("org")
    if not user_id or not organization_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    user = db.get(User, user_id)
    if not user or not user.is_active or user.organization_id != organization_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    organization = db.get(Organization, organization_id)
    if not organization or not organization.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Organization is not active")
    return user


def get_tenant(user: User = Depends(get_current_user)) -> TenantContext:
    return TenantContext(organization_id=user.organization_id, user_id=user.id, role=user.role)


ADMIN_ROLES = ("ADMIN", "ORGANIZATION_ADMIN")


def require_admin(ctx: TenantContext = Depends(get_tenant)) -> TenantContext:
    if ctx.role not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required")
    return ctx
