"""SQLModel TemporaryRegistration model"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


class TemporaryRegistration(SQLModel, table=True):
    """Signup data held until payment succeeds, keyed by a single-use token"""

    __tablename__ = "temp_registrations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    token: str = Field(unique=True, index=True)
    first_name: str
    last_name: str
    email: str = Field(index=True)
    phone: str
    password_hash: str
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
