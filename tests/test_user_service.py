import pytest

from proficiency_exam.errors import DuplicateEmail, InvalidCredentials
from tests.config import TEST_PASSWORD


def test_create_user_normalizes_email(create_user, user_service):
    user = create_user(email="  Mixed.Case@Example.com ")

    assert user.email == "mixed.case@example.com"
    assert user_service.get_user_by_email("MIXED.case@example.com").id == user.id


def test_duplicate_email_is_rejected(create_user):
    create_user(email="dup@example.com")

    with pytest.raises(DuplicateEmail):
        create_user(email="DUP@example.com")


def test_authenticate(create_user, user_service):
    user = create_user(email="auth@example.com")

    assert user_service.authenticate("auth@example.com", TEST_PASSWORD).id == user.id
    with pytest.raises(InvalidCredentials):
        user_service.authenticate("auth@example.com", "wrong-password")
    with pytest.raises(InvalidCredentials):
        user_service.authenticate("missing@example.com", TEST_PASSWORD)
