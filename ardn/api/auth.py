from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ardn.api.deps import get_current_user
from ardn.core.security import create_access_token, verify_password
from ardn.db.session import get_db
from ardn.models.organization import Organization
from ardn.models.user import User
from ardn.schemas.auth import LoginRequest, MeResponse, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == payload.email.strip().lower()))
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = create_access_token(subject=user.id, organization_id=user.organization_id, role=user.role)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    organization = db.get(Organization, user.organization_id)
    return MeResponse(
        user_id=user.id,
        organization_id=organization.id,
        organization_name=organization.name,
        organization_slug=organization.slug,
        email=user.email,
        name=user.name,
        role=user.role,
    )
