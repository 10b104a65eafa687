"""Periodic removal of expired temporary registrations and auth tokens"""

import asyncio
import logging

from sqlmodel import Session

from proficiency_exam.services.auth_token_service import AuthTokenService
from proficiency_exam.services.temp_registration_service import (
    TempRegistrationService,
)
from proficiency_exam.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


def sweep_expired_records(db_session: Session, clock: Clock = utcnow) -> dict:
    """
    Delete expired temporary registrations and auth tokens.

    Reads already treat expired records as missing; this only reclaims space.
    Session tokens are left to Redis TTLs.

    Returns:
        Number of deleted rows per record type
    """
    return {
        "temp_registrations": TempRegistrationService(db_session, clock).sweep_expired(),
        "auth_tokens": AuthTokenService(db_session, clock).sweep_expired(),
    }


async def run_expiry_sweeper(engine, interval_seconds: int) -> None:
    """Sweep every ``interval_seconds`` until cancelled"""
    logger.info(f"Expiry sweeper running every {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            with Session(engine) as db_session:
                removed = sweep_expired_records(db_session)
            if any(removed.values()):
                logger.info(f"Expiry sweep removed {removed}")
        except Exception:
            logger.exception("Expiry sweep failed, retrying next interval")
