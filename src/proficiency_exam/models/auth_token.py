"""SQLModel AuthToken model"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


class AuthToken(SQLModel, table=True):
    """Long-lived account token bound to one user"""

    __tablename__ = "auth_tokens"

    token: str = Field(primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    issued_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
