from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
import base64
import sys

from sqlalchemy import select

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from ardn.core.config import get_settings
from ardn.core.context import TenantContext
from ardn.core.errors import ConflictError, ExpiredWindowError
from ardn.db.session import session_scope
from ardn.models.program import Program
from ardn.models.student import Student
from ardn.models.user import User
from ardn.schemas.activities import ActivityCreateRequest
from ardn.schemas.participations import ParticipationCreateRequest
from ardn.schemas.programs import ProgramCreateRequest
from ardn.schemas.students import StudentCreateRequest
from ardn.services.activities import create_activities
from ardn.services.participation import record_participation
from ardn.services.programs import create_program
from ardn.services.students import create_student


DEMO_PROGRAM = "[DEMO] Yaz Okulu"
PNG_1X1 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAwMCAO3f2I0AAAAASUVORK5CYII="
)


def ensure_file(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_bytes(PNG_1X1)


def main() -> None:
    settings = get_settings()
    media_root = settings.media_path
    media_root.mkdir(parents=True, exist_ok=True)

    with session_scope() as db:
        admin = db.scalar(select(User).where(User.email == settings.bootstrap_admin_email.lower()))
        if not admin:
            raise RuntimeError("Admin user not found. Run seed_organization first.")
        ctx = TenantContext(organization_id=admin.organization_id, user_id=admin.id, role=admin.role)

        if db.scalar(select(Program.id).where(Program.organization_id == ctx.organization_id, Program.name == DEMO_PROGRAM)):
            print("Demo data already present, nothing to do.")
            return

        today = datetime.now(UTC).date()
        program = create_program(
            db,
            ctx,
            ProgramCreateRequest(
                name=DEMO_PROGRAM,
                description="Demo program with recurring activities",
                start_date=today - timedelta(days=30),
                end_date=today + timedelta(days=60),
            ),
        )

        student_templates = [
            ("1001", "Ahmet Yilmaz", "9A"),
            ("1002", "Ayse Demir", "9A"),
            ("1003", "Mehmet Kaya", "10B"),
            ("1004", "Zeynep Celik", "10B"),
            ("1005", "Ali Sahin", "11C"),
        ]
        students: list[Student] = []
        for number, name, class_name in student_templates:
            photo_relative = f"students/demo-{number}/photo.png"
            ensure_file(media_root / photo_relative)
            students.append(
                create_student(
                    db,
                    ctx,
                    StudentCreateRequest(
                        name=name,
                        student_number=number,
                        class_name=class_name,
                        program_id=program.id,
                        photo_url=f"{settings.media_base_url.rstrip('/')}/{photo_relative}",
                    ),
                )
            )

        start = datetime.now(UTC).replace(minute=0, second=0, microsecond=0) - timedelta(days=6)
        weekly = create_activities(
            db,
            ctx,
            ActivityCreateRequest(
                title="Sabah Namazi",
                activity_date=start.date(),
                start_time=start,
                end_time=start + timedelta(hours=1),
                points=10,
                program_id=program.id,
                is_recurring=True,
                recurrence_type="DAILY",
                recurrence_end_date=start.date() + timedelta(days=13),
                auto_include_all_students=False,
            ),
        )
        create_activities(
            db,
            ctx,
            ActivityCreateRequest(
                title="Kitap Okuma",
                activity_date=today,
                start_time=datetime.now(UTC),
                points=25,
                program_id=program.id,
                auto_include_all_students=True,
            ),
        )

        recorded = 0
        now = datetime.now(UTC)
        for activity in weekly.activities:
            for index, student in enumerate(students):
                if (index + activity.activity_date.day) % 3 == 0:
                    continue
                try:
                    record_participation(
                        db,
                        ctx,
                        ParticipationCreateRequest(
                            student_id=student.id,
                            activity_id=activity.id,
                            is_late=index == 4,
                        ),
                        now=min(now, activity.start_time + timedelta(minutes=30)),
                    )
                    recorded += 1
                except (ConflictError, ExpiredWindowError):
                    continue

    print(f"Demo data created: {len(students)} students, {len(weekly.activities) + 1} activities, {recorded} participations.")


if __name__ == "__main__":
    main()
