"""Pydantic schemas for the tutor analytics dashboard."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class MonthlyDataPoint(BaseModel):
    month: str
    value: int


class CoursePerformance(BaseModel):
    id: UUID
    title: str
    image_url: str | None = None
    price: int
    total_enrollments: int
    total_revenue: int
    total_lessons: int
    completion_rate: int
    avg_quiz_score: int | None = None


class RecentEnrollment(BaseModel):
    student_name: str
    student_email: str
    course_title: str
    enrolled_at: datetime
    amount: int


class QuizPerformance(BaseModel):
    lesson_id: UUID
    lesson_title: str
    course_title: str
    avg_score: int
    pass_rate: int
    total_attempts: int


class TutorAnalytics(BaseModel):
    """Amounts are in kobo."""

    total_revenue: int
    total_students: int
    published_courses: int
    total_courses: int
    avg_quiz_score: int | None = None
    revenue_by_month: list[MonthlyDataPoint]
    enrollments_by_month: list[MonthlyDataPoint]
    courses: list[CoursePerformance]
    recent_enrollments: list[RecentEnrollment]
    quiz_performance: list[QuizPerformance]
