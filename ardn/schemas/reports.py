from datetime import date, datetime

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    name: str
    student_number: str
    class_name: str
    photo_url: str | None
    program_name: str | None
    total_points: int
    participations_in_period: int
    points_in_period: int


class ActivitySummaryItem(BaseModel):
    id: str
    title: str
    date: date
    program_name: str | None
    total_participants: int
    max_participants: int | None
    participation_rate: float | None
    points_awarded: int
    average_points: float


class ParticipationByDateItem(BaseModel):
    date: date
    total_participations: int
    unique_students: int
    average_participations_per_student: float


class TopStudent(BaseModel):
    rank: int
    id: str
    name: str
    class_name: str
    total_points: int
    program_name: str | None


class SummaryReport(BaseModel):
    total_students: int
    total_activities: int
    total_participations: int
    total_points_awarded: int
    active_programs: int
    average_points_per_student: float
    average_participations_per_activity: float
    top_students: list[TopStudent]


class RecentActivity(BaseModel):
    id: str
    title: str
    program_name: str | None
    participant_count: int
    activity_date: date
    start_time: datetime
    is_recurring: bool
    points: int


class DashboardStats(BaseModel):
    total_students: int
    active_programs: int
    total_activities: int
    total_points: int
    recent_activities: list[RecentActivity]
