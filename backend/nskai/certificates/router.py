"""Certificate endpoints."""

from uuid import UUID

from fastapi import APIRouter

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import CertificateData, CertificateEligibility, CompletedCourse
from .service import CertificateService


router = APIRouter(prefix="/api/v1/certificates", tags=["certificates"])


@router.get("")
async def get_completed_courses(auth: CurrentAuth) -> list[CompletedCourse]:
    courses = raise_for_result(await CertificateService(auth).get_completed_courses())
    return [CompletedCourse(**course) for course in courses]


@router.get("/{course_id}")
async def get_certificate_data(course_id: UUID, auth: CurrentAuth) -> CertificateData:
    return CertificateData(**raise_for_result(await CertificateService(auth).get_certificate_data(course_id)))


@router.get("/{course_id}/eligibility")
async def check_certificate_eligibility(course_id: UUID, auth: CurrentAuth) -> CertificateEligibility:
    eligible = raise_for_result(await CertificateService(auth).check_certificate_eligibility(course_id))
    return CertificateEligibility(eligible=eligible)
