"""User account endpoints and the Clerk webhook."""

from fastapi import APIRouter, Request

from nskai.auth import CurrentAuth
from nskai.database.session import DbSession
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    LearnerProfile,
    LearnerProfileUpdate,
    LearnerStats,
    OnboardingRequest,
    TutorSettings,
    TutorSettingsUpdate,
    UserResponse,
)
from .service import UserService
from .webhooks import ClerkWebhookService


router = APIRouter(prefix="/api/v1/users", tags=["users"])
webhook_router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/onboarding")
async def complete_onboarding(data: OnboardingRequest, auth: CurrentAuth) -> UserResponse:
    """Choose a role after sign-up."""
    user = raise_for_result(await UserService(auth).complete_onboarding(data))
    return UserResponse.model_validate(user)


@router.get("/me/profile")
async def get_learner_profile(auth: CurrentAuth) -> LearnerProfile:
    return LearnerProfile.model_validate(raise_for_result(await UserService(auth).get_learner_profile()))


@router.patch("/me/profile")
async def update_learner_profile(data: LearnerProfileUpdate, auth: CurrentAuth) -> LearnerProfile:
    return LearnerProfile.model_validate(raise_for_result(await UserService(auth).update_learner_profile(data)))


@router.get("/me/stats")
async def get_learner_stats(auth: CurrentAuth) -> LearnerStats:
    return LearnerStats(**raise_for_result(await UserService(auth).get_learner_stats()))


@router.get("/me/tutor-settings")
async def get_tutor_settings(auth: CurrentAuth) -> TutorSettings:
    return TutorSettings.model_validate(raise_for_result(await UserService(auth).get_tutor_settings()))


@router.patch("/me/tutor-settings")
async def update_tutor_settings(data: TutorSettingsUpdate, auth: CurrentAuth) -> TutorSettings:
    return TutorSettings.model_validate(raise_for_result(await UserService(auth).update_tutor_settings(data)))


@webhook_router.post("/clerk")
async def clerk_webhook(request: Request, session: DbSession) -> dict[str, str]:
    body = await request.body()
    headers = {name: request.headers.get(name) for name in ("svix-id", "svix-timestamp", "svix-signature")}
    outcome = await ClerkWebhookService(session).handle_clerk_webhook(body, headers)
    return {"status": outcome}
