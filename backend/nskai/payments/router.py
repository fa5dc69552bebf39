"""Payment verification and Paystack webhook endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from nskai.auth import CurrentAuth
from nskai.database.session import DbSession
from nskai.middleware.error_handlers import raise_for_result
from nskai.middleware.security import payment_route_limit

from .schemas import EnrollmentOutcome, VerifyCoursePayment, VerifyPathPayment
from .service import PaymentService
from .webhooks import PaystackWebhookService


router = APIRouter(prefix="/api/v1/payments", tags=["payments"], dependencies=[Depends(payment_route_limit)])
webhook_router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/verify")
async def verify_transaction(data: VerifyCoursePayment, auth: CurrentAuth) -> EnrollmentOutcome:
    """Exchange a Paystack reference for a course purchase."""
    outcome = raise_for_result(await PaymentService(auth).verify_transaction(data.reference, data.course_id))
    return EnrollmentOutcome(**outcome)


@router.post("/verify-path")
async def verify_path_transaction(data: VerifyPathPayment, auth: CurrentAuth) -> EnrollmentOutcome:
    """Exchange a Paystack reference for a learning path enrollment."""
    outcome = raise_for_result(await PaymentService(auth).verify_path_transaction(data.reference, data.path_id))
    return EnrollmentOutcome(**outcome)


@router.post("/free/{course_id}")
async def enroll_free(course_id: UUID, auth: CurrentAuth) -> EnrollmentOutcome:
    outcome = raise_for_result(await PaymentService(auth).enroll_free(course_id))
    return EnrollmentOutcome(**outcome)


@webhook_router.post("/paystack")
async def paystack_webhook(request: Request, session: DbSession) -> dict[str, str]:
    body = await request.body()
    outcome = await PaystackWebhookService(session).handle_paystack_webhook(
        body, request.headers.get("x-paystack-signature")
    )
    return {"status": outcome}
