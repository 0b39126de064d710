from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ardn.core.config import get_settings
from ardn.db.session import get_db
from ardn.models.organization import Organization

router = APIRouter(tags=["system"])


@router.get("/health")
def health():
    settings = get_settings()
    return {"status": "ok", "version": settings.app_version}


@router.get("/system/info")
def system_info(db: Session = Depends(get_db)):
    settings = get_settings()
    organizations = db.scalar(select(func.count()).select_from(Organization).where(Organization.is_active.is_(True))) or 0
    return {
        "app_name": settings.app_name,
        "app_env": settings.app_env,
        "app_version": settings.app_version,
        "storage_backend": settings.storage_backend,
        "active_organizations": organizations,
    }
