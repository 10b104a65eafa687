import uuid

import pytest
from sqlmodel import Session, select

from proficiency_exam.models.payment import Payment, PaymentRecordStatus
from proficiency_exam.models.test_session import PaymentStatus, SessionStatus, TestSession
from proficiency_exam.services.payment_service import (
    PaymentService,
    build_reference,
    parse_reference_session_id,
    resolve_session_id,
    validate_amount,
)

SESSION_ID = uuid.UUID("0b8f8d43-2f7e-4bd4-9a53-1c1f0c7f2a10")


@pytest.fixture
def payment_service(_db_session, clock):
    return PaymentService(_db_session, clock)


@pytest.mark.parametrize(
    "amount,currency,expected",
    [
        (1600, "USD", True),
        (1600, "usd", True),
        (1520, "USD", True),
        (1519, "USD", False),
        (1600000, "NGN", True),
        (1680001, "NGN", False),
        (190000, "KES", True),
        (1600, "GBP", False),
        (1600, None, False),
    ],
)
def test_validate_amount(amount, currency, expected):
    assert validate_amount(amount, currency) is expected


def test_build_reference_formats():
    assert build_reference(SESSION_ID, 1710000000000) == f"EP_{SESSION_ID}_1710000000000"
    assert (
        build_reference(SESSION_ID, 1710000000000, mpesa=True)
        == f"EP_MPESA_{SESSION_ID}_1710000000000"
    )


@pytest.mark.parametrize(
    "reference,expected",
    [
        (f"EP_{SESSION_ID}_1710000000000", SESSION_ID),
        (f"EP_MPESA_{SESSION_ID}_1710000000000", SESSION_ID),
        (f"EP_{SESSION_ID}", SESSION_ID),
        ("EP_garbage_1710000000000", None),
        ("EP", None),
        ("", None),
    ],
)
def test_parse_reference_session_id(reference, expected):
    assert parse_reference_session_id(reference) == expected


def test_resolve_session_id_prefers_metadata():
    other = uuid.uuid4()
    reference = f"EP_{SESSION_ID}_1710000000000"

    assert resolve_session_id({"sessionId": str(other)}, reference) == other
    assert resolve_session_id({}, reference) == SESSION_ID
    assert resolve_session_id("", reference) == SESSION_ID
    assert resolve_session_id({"sessionId": "bogus"}, reference) == SESSION_ID


def test_upsert_is_idempotent_per_reference(
    payment_service, session_service, _db_session
):
    session, _ = session_service.create_pre_payment()
    reference = build_reference(session.id, 1)

    payment_service.upsert(session.id, reference, 1600, "USD", PaymentRecordStatus.PENDING)
    payment_service.upsert(session.id, reference, 1600, "USD", PaymentRecordStatus.SUCCESS)
    payment_service.upsert(session.id, reference, 1600, None, PaymentRecordStatus.SUCCESS)

    payments = _db_session.exec(select(Payment)).all()
    assert len(payments) == 1
    assert payments[0].status == PaymentRecordStatus.SUCCESS
    assert payments[0].currency == "USD"


def test_apply_charge_success_completes_payment_only(
    payment_service, session_service, get_session
):
    session, _ = session_service.create_pre_payment()
    reference = build_reference(session.id, 1)

    updated = payment_service.apply_charge_success(reference, 1600, "USD", {})

    assert updated.id == session.id
    stored = get_session(session.id)
    assert stored.payment_status == PaymentStatus.COMPLETED
    assert stored.status == SessionStatus.PENDING
    assert stored.user_id is None
    assert payment_service.get_by_reference(reference).status == PaymentRecordStatus.SUCCESS


def test_apply_charge_success_ignores_bad_amount_and_unknown_session(
    payment_service, session_service, get_session
):
    session, _ = session_service.create_pre_payment()

    assert payment_service.apply_charge_success(
        build_reference(session.id, 1), 500, "USD", {}
    ) is None
    assert payment_service.apply_charge_success(
        build_reference(uuid.uuid4(), 1), 1600, "USD", {}
    ) is None

    assert get_session(session.id).payment_status == PaymentStatus.PENDING


def test_upsert_updates_row_inserted_concurrently(
    payment_service, session_service, _db_session, engine, get_session, monkeypatch
):
    session, _ = session_service.create_pre_payment()
    reference = build_reference(session.id, 1)

    # The webhook records the reference on its own connection first
    with Session(engine) as webhook_db:
        PaymentService(webhook_db).upsert(
            session.id, reference, 1600, "USD", PaymentRecordStatus.PENDING
        )

    # ...after this service already looked it up and found nothing
    lookup = payment_service.get_by_reference
    calls = []

    def stale_lookup(ref):
        calls.append(ref)
        return None if len(calls) == 1 else lookup(ref)

    monkeypatch.setattr(payment_service, "get_by_reference", stale_lookup)

    stored = _db_session.get(TestSession, session.id)
    stored.payment_status = PaymentStatus.COMPLETED
    _db_session.add(stored)

    payment = payment_service.upsert(
        session.id, reference, 1600, "USD", PaymentRecordStatus.SUCCESS, commit=False
    )
    _db_session.commit()

    payments = _db_session.exec(select(Payment)).all()
    assert len(payments) == 1
    assert payments[0].id == payment.id
    assert payments[0].status == PaymentRecordStatus.SUCCESS
    # The caller's own change in the same transaction survives the lost insert
    assert get_session(session.id).payment_status == PaymentStatus.COMPLETED
