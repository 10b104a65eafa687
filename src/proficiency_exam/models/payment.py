"""SQLModel Payment model"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


class PaymentRecordStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class Payment(SQLModel, table=True):
    """A charge against a test session, unique per provider reference"""

    __tablename__ = "payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: uuid.UUID = Field(foreign_key="test_sessions.id", index=True)
    provider_reference: str = Field(unique=True, index=True)
    amount: int  # minor currency units (cents, kobo)
    currency: Optional[str] = None
    status: PaymentRecordStatus = Field(
        default=PaymentRecordStatus.PENDING,
        sa_column=Column(
            SAEnum(
                PaymentRecordStatus,
                name="payment_status",
                native_enum=True,
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            server_default=PaymentRecordStatus.PENDING.value,
        ),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
