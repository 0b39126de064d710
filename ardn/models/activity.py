from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ardn.db.base import Base
from ardn.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin

MIN_ACTIVITY_POINTS = 1
MAX_ACTIVITY_POINTS = 100


class Activity(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint("points >= 1 AND points <= 100", name="ck_activities_points_range"),
        CheckConstraint("max_participants IS NULL OR max_participants >= 1", name="ck_activities_max_participants"),
        CheckConstraint(
            "recurrence_type IS NULL OR recurrence_type IN ('DAILY', 'WEEKLY', 'MONTHLY')",
            name="ck_activities_recurrence_type",
        ),
    )

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_type: Mapped[str | None] = mapped_column(String(16), nullable=True)  # DAILY | WEEKLY | MONTHLY
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    program = relationship("Program", back_populates="activities")
    participations = relationship("Participation", back_populates="activity")
