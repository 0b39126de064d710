import argparse
from pathlib import Path
import sys

from sqlalchemy import select

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from ardn.core.config import get_settings
from ardn.core.security import hash_password
from ardn.db.session import session_scope
from ardn.models.organization import Organization
from ardn.models.user import USER_ROLES, User
from ardn.services.organizations import create_organization, create_user


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create an organization and its admin account, or reset the password.")
    parser.add_argument("--name", default=settings.bootstrap_organization_name)
    parser.add_argument("--slug", default=settings.bootstrap_organization_slug)
    parser.add_argument("--email", default=settings.bootstrap_admin_email)
    parser.add_argument("--admin-name", default=settings.bootstrap_admin_name)
    parser.add_argument("--password", default=settings.bootstrap_admin_password)
    parser.add_argument("--role", default="ORGANIZATION_ADMIN", choices=USER_ROLES)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    with session_scope() as db:
        organization = db.scalar(select(Organization).where(Organization.slug == args.slug))
        if organization is None:
            organization = create_organization(db, args.name, args.slug)
            print(f"Organization {args.slug} created.")

        email = args.email.strip().lower()
        existing = db.scalar(select(User).where(User.email == email))
        if existing:
            if existing.organization_id != organization.id:
                raise SystemExit(f"User {email} belongs to another organization.")
            existing.password_hash = hash_password(args.password)
            existing.role = args.role
            db.add(existing)
            db.commit()
            action = "updated"
        else:
            create_user(
                db,
                organization,
                email=email,
                name=args.admin_name,
                password=args.password,
                role=args.role,
            )
            action = "created"
    print(f"User {email} {action}.")


if __name__ == "__main__":
    main()
