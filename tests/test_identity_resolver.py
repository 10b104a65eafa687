import asyncio

import httpx
import pytest
from sqlmodel import select

from proficiency_exam.backends.payment_verifier import (
    PaystackPaymentVerifier,
    VerificationStatus,
)
from proficiency_exam.backends.paystack_client import PaystackClient
from proficiency_exam.errors import (
    DuplicateEmail,
    ExternalServiceError,
    InvalidPaymentReference,
    PaymentAmountInvalid,
    PaymentFailed,
    RegistrationExpiredOrInvalid,
)
from proficiency_exam.models.payment import Payment, PaymentRecordStatus
from proficiency_exam.models.test_session import PaymentStatus, SessionStatus
from proficiency_exam.models.user import User
from proficiency_exam.services.identity_resolver import (
    IdentityResolver,
    PromotionStatus,
)


@pytest.fixture
def resolver(_db_session, verifier, clock):
    return IdentityResolver(_db_session, verifier, clock)


@pytest.fixture
def temp_token(temp_registration_service):
    registration = temp_registration_service.create(
        first_name="Ada",
        last_name="Obi",
        email="a@b.com",
        phone="+2348000000000",
        password_hash="hashed-password",
    )
    # Promotion deletes the row, so tests hold on to the token itself
    return registration.token


@pytest.fixture
def pre_payment_session(session_service):
    session, _ = session_service.create_pre_payment()
    return session


def _reference(session, ts="1710000000000"):
    return f"EP_{session.id}_{ts}"


async def test_successful_payment_promotes_registration(
    resolver,
    temp_token,
    pre_payment_session,
    temp_registration_service,
    auth_token_service,
    get_session,
    _db_session,
):
    reference = _reference(pre_payment_session)

    result = await resolver.resolve(reference, temp_token)

    assert result.status == PromotionStatus.SUCCESS
    assert result.user.email == "a@b.com"
    assert auth_token_service.resolve(result.auth_token) == result.user.id

    session = get_session(pre_payment_session.id)
    assert session.user_id == result.user.id
    assert session.payment_status == PaymentStatus.COMPLETED
    assert session.status == SessionStatus.PENDING

    users = _db_session.exec(select(User).where(User.email == "a@b.com")).all()
    assert len(users) == 1
    assert temp_registration_service.get(temp_token) is None

    payment = _db_session.exec(
        select(Payment).where(Payment.provider_reference == reference)
    ).one()
    assert payment.status == PaymentRecordStatus.SUCCESS
    assert payment.amount == 1600


async def test_pending_payment_keeps_registration(
    resolver, verifier, temp_token, pre_payment_session, temp_registration_service
):
    verifier.set_result(status=VerificationStatus.PENDING, message="Confirm on phone")

    result = await resolver.resolve(
        f"EP_MPESA_{pre_payment_session.id}_1710000000000", temp_token
    )

    assert result.status == PromotionStatus.PENDING
    assert result.user is None
    assert temp_registration_service.get(temp_token) is not None


async def test_failed_payment_deletes_registration(
    resolver, verifier, temp_token, pre_payment_session, temp_registration_service
):
    verifier.set_result(status=VerificationStatus.FAILED, message="Insufficient funds")

    with pytest.raises(PaymentFailed) as exc_info:
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert exc_info.value.message == "Insufficient funds"
    assert exc_info.value.to_dict()["requireLogout"] is True
    assert temp_registration_service.get(temp_token) is None


async def test_provider_outage_keeps_registration(
    resolver, verifier, temp_token, pre_payment_session, temp_registration_service
):
    verifier.error = ExternalServiceError()

    with pytest.raises(ExternalServiceError):
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert temp_registration_service.get(temp_token) is not None


async def test_rejected_secret_key_keeps_registration(
    _db_session, clock, temp_token, pre_payment_session, temp_registration_service
):
    def handler(request):
        return httpx.Response(401, json={"status": False, "message": "Invalid key"})

    client = PaystackClient("sk_test_rotated", transport=httpx.MockTransport(handler))
    resolver = IdentityResolver(_db_session, PaystackPaymentVerifier(client), clock)

    with pytest.raises(ExternalServiceError):
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert temp_registration_service.get(temp_token) is not None


@pytest.mark.parametrize(
    "amount,currency",
    [(1520, "USD"), (1680, "USD"), (1600000, "NGN"), (180500, "KES"), (199500, "KES")],
)
async def test_amount_within_tolerance_is_accepted(
    resolver, verifier, temp_token, pre_payment_session, amount, currency
):
    verifier.set_result(amount=amount, currency=currency)

    result = await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert result.status == PromotionStatus.SUCCESS


@pytest.mark.parametrize(
    "amount,currency",
    [(1519, "USD"), (1681, "USD"), (800, "USD"), (1600, "EUR"), (None, "USD")],
)
async def test_amount_outside_tolerance_is_rejected(
    resolver,
    verifier,
    temp_token,
    pre_payment_session,
    temp_registration_service,
    get_session,
    amount,
    currency,
):
    verifier.set_result(amount=amount, currency=currency)

    with pytest.raises(PaymentAmountInvalid):
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert temp_registration_service.get(temp_token) is None
    assert get_session(pre_payment_session.id).user_id is None


async def test_session_id_prefers_metadata(
    resolver, verifier, temp_token, pre_payment_session, get_session
):
    verifier.set_result(metadata={"sessionId": str(pre_payment_session.id)})

    result = await resolver.resolve("EP_opaque_1710000000000", temp_token)

    assert get_session(pre_payment_session.id).user_id == result.user.id


async def test_mpesa_reference_resolves_session(
    resolver, verifier, temp_token, pre_payment_session, get_session
):
    verifier.set_result(amount=190000, currency="KES")

    result = await resolver.resolve(
        f"EP_MPESA_{pre_payment_session.id}_1710000000000", temp_token
    )

    assert get_session(pre_payment_session.id).user_id == result.user.id


@pytest.mark.parametrize(
    "reference",
    ["EP_not-a-session_1710000000000", "nounderscore", "EP_{unknown}_1710000000000"],
)
async def test_unresolvable_session_is_invalid_reference(
    resolver, temp_token, temp_registration_service, reference
):
    reference = reference.replace("{unknown}", "6f1c1f0e-8a58-4a43-9d62-6d2b4b0f4e11")

    with pytest.raises(InvalidPaymentReference):
        await resolver.resolve(reference, temp_token)

    assert temp_registration_service.get(temp_token) is None


async def test_session_already_owned_is_invalid_reference(
    resolver, temp_token, paid_session, create_user
):
    owner = create_user(email="owner@example.com")
    session, _ = paid_session(user_id=owner.id)

    with pytest.raises(InvalidPaymentReference):
        await resolver.resolve(_reference(session), temp_token)


async def test_unknown_or_expired_registration(
    resolver, verifier, temp_token, pre_payment_session, clock
):
    with pytest.raises(RegistrationExpiredOrInvalid):
        await resolver.resolve(_reference(pre_payment_session), "unknown-token")

    clock.advance(hours=1, seconds=1)
    with pytest.raises(RegistrationExpiredOrInvalid):
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert verifier.calls == []


async def test_email_taken_during_payment_is_duplicate(
    resolver,
    temp_token,
    pre_payment_session,
    create_user,
    temp_registration_service,
    get_session,
):
    create_user(email="a@b.com")

    with pytest.raises(DuplicateEmail):
        await resolver.resolve(_reference(pre_payment_session), temp_token)

    assert temp_registration_service.get(temp_token) is None
    assert get_session(pre_payment_session.id).user_id is None


async def test_concurrent_verifications_promote_exactly_once(
    resolver, temp_token, pre_payment_session, _db_session
):
    reference = _reference(pre_payment_session)

    results = await asyncio.gather(
        resolver.resolve(reference, temp_token),
        resolver.resolve(reference, temp_token),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], RegistrationExpiredOrInvalid)

    assert len(_db_session.exec(select(User)).all()) == 1
    assert len(_db_session.exec(select(Payment)).all()) == 1


async def test_second_verification_after_success_fails(
    resolver, temp_token, pre_payment_session
):
    reference = _reference(pre_payment_session)
    await resolver.resolve(reference, temp_token)

    with pytest.raises(RegistrationExpiredOrInvalid):
        await resolver.resolve(reference, temp_token)
