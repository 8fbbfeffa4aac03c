"""Application-level settings stored in the database."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class AppSetting(SQLModel, table=True):
    """Key-value storage for small scalar state such as the cash balance."""

    __tablename__: ClassVar[str] = "app_setting"

    key: str = Field(primary_key=True, max_length=64)
    value: str = Field(nullable=False, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))  # UTC
