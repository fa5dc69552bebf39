"""Course domain services."""

from .course_management_service import CourseManagementService
from .course_query_service import CourseQueryService, has_course_access
from .curriculum_service import CurriculumService
from .lesson_viewer_service import LessonViewerService


__all__ = [
    "CourseManagementService",
    "CourseQueryService",
    "CurriculumService",
    "LessonViewerService",
    "has_course_access",
]
