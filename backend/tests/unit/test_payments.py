"""Enrollment through Paystack verification, bundles and free courses."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.core.result import ErrorKind
from nskai.learning_paths.models import LearningPath, LearningPathCourse, UserLearningPath
from nskai.middleware.error_handlers import ExternalServiceError
from nskai.payments.models import Purchase
from nskai.payments.service import PaymentService, free_reference
from nskai.users.models import UserRole
from tests.fixtures.factories import make_course, make_purchase, make_user


@pytest.fixture
def paystack() -> AsyncMock:
    client = AsyncMock()
    client.verify_transaction.return_value = {"status": "success", "amount": 500_000, "reference": "ref_1"}
    return client


@pytest.fixture
def payments(auth_for, paystack: AsyncMock, notifier: AsyncMock):
    def _service(user) -> PaymentService:
        return PaymentService(auth_for(user), paystack=paystack, notifier=notifier)

    return _service


async def _purchases(session: AsyncSession, user) -> list[Purchase]:
    return list((await session.scalars(select(Purchase).where(Purchase.user_id == user.id))).all())


@pytest.mark.asyncio
async def test_verified_payment_records_purchase_and_emails(
    db_session: AsyncSession, payments, notifier: AsyncMock
) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session, first_name="Kemi")
    course = await make_course(db_session, tutor, price=500_000)

    result = await payments(learner).verify_transaction("ref_1", course.id)

    assert result.value == {"already_enrolled": False}
    [purchase] = await _purchases(db_session, learner)
    assert purchase.paystack_reference == "ref_1"
    assert purchase.amount == 500_000
    notifier.send_purchase_confirmation.assert_awaited_once()
    assert notifier.send_purchase_confirmation.await_args.kwargs["name"] == "Kemi"


@pytest.mark.asyncio
async def test_second_verification_is_already_enrolled(db_session: AsyncSession, payments) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=500_000)

    await payments(learner).verify_transaction("ref_1", course.id)
    again = await payments(learner).verify_transaction("ref_1", course.id)

    assert again.value == {"already_enrolled": True}
    assert len(await _purchases(db_session, learner)) == 1


@pytest.mark.asyncio
async def test_underpayment_is_rejected(db_session: AsyncSession, payments, paystack: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=500_000)
    paystack.verify_transaction.return_value = {"status": "success", "amount": 100}

    result = await payments(learner).verify_transaction("ref_1", course.id)

    assert result.error.kind == ErrorKind.VALIDATION
    assert result.error.message == "Payment amount incorrect"
    assert await _purchases(db_session, learner) == []


@pytest.mark.asyncio
async def test_failed_transaction_is_invalid(db_session: AsyncSession, payments, paystack: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=500_000)
    paystack.verify_transaction.return_value = None

    result = await payments(learner).verify_transaction("ref_1", course.id)

    assert result.error.message == "Transaction failed or invalid"


@pytest.mark.asyncio
async def test_paystack_outage_is_external_error(db_session: AsyncSession, payments, paystack: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=500_000)
    paystack.verify_transaction.side_effect = ExternalServiceError("Paystack", "timeout")

    result = await payments(learner).verify_transaction("ref_1", course.id)

    assert result.error.kind == ErrorKind.EXTERNAL_SERVICE


@pytest.mark.asyncio
async def test_email_failure_does_not_undo_purchase(
    db_session: AsyncSession, payments, notifier: AsyncMock
) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=500_000)
    notifier.send_purchase_confirmation.side_effect = RuntimeError("resend down")

    result = await payments(learner).verify_transaction("ref_1", course.id)

    assert result.ok
    assert len(await _purchases(db_session, learner)) == 1


@pytest.mark.asyncio
async def test_path_payment_grants_unowned_courses(db_session: AsyncSession, payments, paystack: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    owned = await make_course(db_session, tutor, price=200_000)
    fresh = await make_course(db_session, tutor, price=300_000)
    await make_purchase(db_session, learner, owned, amount=200_000)
    path = LearningPath(title="Data Track", is_published=True)
    db_session.add(path)
    await db_session.flush()
    db_session.add_all(
        [
            LearningPathCourse(learning_path_id=path.id, course_id=owned.id, position=1),
            LearningPathCourse(learning_path_id=path.id, course_id=fresh.id, position=2),
        ]
    )
    await db_session.commit()

    result = await payments(learner).verify_path_transaction("ref_path", path.id)

    assert result.value == {"already_enrolled": False}
    enrollment = await db_session.scalar(select(UserLearningPath).where(UserLearningPath.user_id == learner.id))
    assert enrollment.amount == 500_000
    bundle = await db_session.scalar(
        select(Purchase).where(Purchase.user_id == learner.id, Purchase.course_id == fresh.id)
    )
    assert bundle.amount == 0
    assert bundle.paystack_reference.startswith(f"BUNDLE-{path.id}-ref_path")
    assert len(await _purchases(db_session, learner)) == 2


@pytest.mark.asyncio
async def test_reference_for_one_course_cannot_unlock_another(db_session: AsyncSession, payments) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    bought = await make_course(db_session, tutor, price=500_000)
    other = await make_course(db_session, tutor, title="Deep Learning", price=500_000)
    await make_purchase(db_session, learner, bought, amount=500_000, paystack_reference="ref_1")

    result = await payments(learner).verify_transaction("ref_1", other.id)

    assert result.error.kind == ErrorKind.CONFLICT
    assert [p.course_id for p in await _purchases(db_session, learner)] == [bought.id]


async def _path(session: AsyncSession, *courses, price: int | None = None) -> LearningPath:
    path = LearningPath(title="Data Track", is_published=True, price=price)
    session.add(path)
    await session.flush()
    session.add_all(
        LearningPathCourse(learning_path_id=path.id, course_id=course.id, position=index + 1)
        for index, course in enumerate(courses)
    )
    await session.commit()
    return path


@pytest.mark.asyncio
async def test_path_payment_checks_explicit_path_price(
    db_session: AsyncSession, payments, paystack: AsyncMock
) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    free = await make_course(db_session, tutor, price=0)
    path = await _path(db_session, free, price=900_000)
    paystack.verify_transaction.return_value = {"status": "success", "amount": 100, "reference": "ref_cheap"}

    result = await payments(learner).verify_path_transaction("ref_cheap", path.id)

    assert result.error.kind == ErrorKind.VALIDATION
    assert result.error.message == "Payment amount incorrect"
    assert await db_session.scalar(select(UserLearningPath.id)) is None


@pytest.mark.asyncio
async def test_path_reference_cannot_be_replayed_on_another_path(
    db_session: AsyncSession, payments, paystack: AsyncMock
) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    first_course = await make_course(db_session, tutor, price=200_000)
    second_course = await make_course(db_session, tutor, title="Statistics", price=200_000)
    first_path = await _path(db_session, first_course)
    second_path = await _path(db_session, second_course)
    paystack.verify_transaction.return_value = {"status": "success", "amount": 200_000, "reference": "ref_once"}

    paid = await payments(learner).verify_path_transaction("ref_once", first_path.id)
    replayed = await payments(learner).verify_path_transaction("ref_once", second_path.id)
    as_course = await payments(learner).verify_transaction("ref_once", second_course.id)

    assert paid.value == {"already_enrolled": False}
    assert replayed.error.kind == ErrorKind.CONFLICT
    assert as_course.error.kind == ErrorKind.CONFLICT
    enrollments = (await db_session.scalars(select(UserLearningPath.learning_path_id))).all()
    assert enrollments == [first_path.id]
    assert [p.course_id for p in await _purchases(db_session, learner)] == [first_course.id]


@pytest.mark.asyncio
async def test_free_course_enrollment(db_session: AsyncSession, payments) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=0)

    first = await payments(learner).enroll_free(course.id)
    second = await payments(learner).enroll_free(course.id)

    assert first.value == {"already_enrolled": False}
    assert second.value == {"already_enrolled": True}
    [purchase] = await _purchases(db_session, learner)
    assert purchase.paystack_reference == free_reference(course.id, learner.id)


@pytest.mark.asyncio
async def test_priced_course_is_not_free(db_session: AsyncSession, payments) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=1_000)

    result = await payments(learner).enroll_free(course.id)

    assert result.error.message == "This course requires payment"
