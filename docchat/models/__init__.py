"""
Models Package

SQLAlchemy ORM 모델을 포함합니다.
"""

from datetime import datetime
from ulid import ULID
from sqlalchemy import String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional

from docchat.database import Base
from docchat.config import settings

# 환경변수에서 스키마 로드
DB_SCHEMA = settings.DB_SCHEMA

# PostgreSQL에서는 JSONB, 그 외(테스트용 SQLite 등)에서는 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_ulid() -> str:
    """ULID 생성 함수"""
    return str(ULID())


class TimestampMixin:
    """
    타임스탬프 믹스인

    createdAt, updatedAt, deletedAt 필드를 제공합니다.
    """
    createdAt: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updatedAt: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deletedAt: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ULIDMixin:
    """
    ULID 믹스인

    ULID 기본 키를 제공합니다.
    """
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)


class BaseModel(Base, ULIDMixin, TimestampMixin):
    """
    공통 Base 모델

    모든 ORM 모델의 기본 클래스입니다.
    ULID 기본 키와 타임스탬프 필드를 포함합니다.
    """
    __abstract__ = True
    __table_args__ = {"schema": DB_SCHEMA}


# 모든 모델을 import (테이블 생성 시 필요)
from docchat.models.chat import Chat
from docchat.models.message import Message, MessageSender
from docchat.models.compiled_document import CompiledDocument


__all__ = [
    "Base",
    "BaseModel",
    "ULIDMixin",
    "TimestampMixin",
    "JSONType",
    "generate_ulid",
    "Chat",
    "Message",
    "MessageSender",
    "CompiledDocument",
]
