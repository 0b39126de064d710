import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ardn.core.config import Settings
from ardn.core.errors import ConflictError, ValidationError
from ardn.core.security import hash_password
from ardn.db.transaction import run_atomic
from ardn.models.organization import Organization
from ardn.models.user import USER_ROLES, User

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def validate_slug(slug: str) -> str:
    slug = slug.strip()
    if not SLUG_PATTERN.fullmatch(slug) or len(slug) > 128:
        raise ValidationError("Slug must contain only lowercase letters, digits and single hyphens")
    return slug


def create_organization(db: Session, name: str, slug: str) -> Organization:
    name = name.strip()
    if not name:
        raise ValidationError("Organization name is required")
    slug = validate_slug(slug)

    if db.scalar(select(Organization.id).where(Organization.slug == slug)):
        raise ConflictError(f"Organization slug '{slug}' is already taken")

    organization = Organization(name=name, slug=slug, is_active=True)

    def _work() -> Organization:
        db.add(organization)
        db.flush()
        return organization

    try:
        run_atomic(db, _work, label="create_organization")
    except IntegrityError as exc:
        raise ConflictError(f"Organization slug '{slug}' is already taken") from exc
    logger.info("Organization %s (%s) created", organization.id, slug)
    return organization


def create_user(
    db: Session,
    organization: Organization,
    *,
    email: str,
    name: str,
    password: str,
    role: str = "TEACHER",
) -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"Unknown role '{role}'")
    email = email.strip().lower()
    if db.scalar(select(User.id).where(User.email == email)):
        raise ConflictError(f"User '{email}' already exists")

    user = User(
        organization_id=organization.id,
        email=email,
        name=name.strip() or email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )

    def _work() -> User:
        db.add(user)
        db.flush()
        return user

    try:
        run_atomic(db, _work, label="create_user")
    except IntegrityError as exc:
        raise ConflictError(f"User '{email}' already exists") from exc
    return user


def ensure_bootstrap_tenant(db: Session, settings: Settings) -> User:
    """Create the bootstrap organization and its admin account if missing."""
    organization = db.scalar(
        select(Organization).where(Organization.slug == settings.bootstrap_organization_slug)
    )
    if organization is None:
        organization = create_organization(
            db, settings.bootstrap_organization_name, settings.bootstrap_organization_slug
        )

    admin = db.scalar(select(User).where(User.email == settings.bootstrap_admin_email.lower()))
    if admin is None:
        admin = create_user(
            db,
            organization,
            email=settings.bootstrap_admin_email,
            name=settings.bootstrap_admin_name,
            password=settings.bootstrap_admin_password,
            role="ORGANIZATION_ADMIN",
        )
        logger.info("Bootstrap admin %s created for organization %s", admin.email, organization.slug)
    return admin
