from datetime import UTC, date, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ADMIN_EMAIL = "admin@ardn.local"
ADMIN_PASSWORD = "admin123"


def _configure_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_file = tmp_path / "test.db"
    media_dir = tmp_path / "media"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_file.as_posix()}")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("MEDIA_DIR", str(media_dir))
    monkeypatch.setenv("MEDIA_BASE_URL", "http://testserver/media")
    monkeypatch.setenv("AUTO_CREATE_ADMIN", "true")
    monkeypatch.setenv("BOOTSTRAP_ORGANIZATION_SLUG", "ardn-yurdu")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("PARTICIPATION_WINDOW_HOURS", "3")
    monkeypatch.setenv("LATE_PENALTY_FACTOR", "0.8")


@pytest.fixture()
def app_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _configure_environment(tmp_path, monkeypatch)

    from ardn.core.config import clear_settings_cache
    from ardn.db.base import Base
    from ardn.db.session import get_engine, reset_engine
    from ardn.main import create_app
    import ardn.models  # noqa: F401

    clear_settings_cache()
    reset_engine()
    Base.metadata.create_all(bind=get_engine())

    app = create_app()
    with TestClient(app) as client:
        yield client

    Base.metadata.drop_all(bind=get_engine())
    reset_engine()


@pytest.fixture()
def db_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _configure_environment(tmp_path, monkeypatch)

    from ardn.core.config import clear_settings_cache
    from ardn.db.base import Base
    from ardn.db.session import get_engine, reset_engine, session_scope
    import ardn.models  # noqa: F401

    clear_settings_cache()
    reset_engine()
    Base.metadata.create_all(bind=get_engine())

    with session_scope() as db:
        yield db

    Base.metadata.drop_all(bind=get_engine())
    reset_engine()
    clear_settings_cache()


@pytest.fixture()
def tenant(db_session):
    from ardn.core.config import get_settings
    from ardn.core.context import TenantContext
    from ardn.services.organizations import ensure_bootstrap_tenant

    admin = ensure_bootstrap_tenant(db_session, get_settings())
    return TenantContext(organization_id=admin.organization_id, user_id=admin.id, role=admin.role)


@pytest.fixture()
def other_tenant(db_session):
    from ardn.core.context import TenantContext
    from ardn.services.organizations import create_organization, create_user

    organization = create_organization(db_session, "Diger Yurt", "diger-yurt")
    user = create_user(
        db_session,
        organization,
        email="teacher@diger.local",
        name="Diger Teacher",
        password="secret123",
        role="TEACHER",
    )
    return TenantContext(organization_id=organization.id, user_id=user.id, role=user.role)


def auth_headers(client: TestClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict[str, str]:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def make_program(db, ctx, name: str = "Yaz Okulu"):
    from ardn.schemas.programs import ProgramCreateRequest
    from ardn.services.programs import create_program

    today = date.today()
    return create_program(
        db,
        ctx,
        ProgramCreateRequest(name=name, start_date=today - timedelta(days=30), end_date=today + timedelta(days=60)),
    )


def make_student(db, ctx, program, number: str, name: str | None = None, class_name: str = "9A"):
    from ardn.schemas.students import StudentCreateRequest
    from ardn.services.students import create_student

    return create_student(
        db,
        ctx,
        StudentCreateRequest(
            name=name or f"Student {number}",
            student_number=number,
            class_name=class_name,
            program_id=program.id,
        ),
    )


def make_activity(db, ctx, program, **overrides):
    from ardn.schemas.activities import ActivityCreateRequest
    from ardn.services.activities import create_activities

    start = overrides.pop("start_time", datetime(2026, 3, 2, 9, 0, tzinfo=UTC))
    fields = {
        "title": "Sabah Namazi",
        "activity_date": start.date(),
        "start_time": start,
        "end_time": start + timedelta(hours=1),
        "points": 10,
        "program_id": program.id,
    }
    fields.update(overrides)
    return create_activities(db, ctx, ActivityCreateRequest(**fields)).activities[0]
