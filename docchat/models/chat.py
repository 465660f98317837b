"""
Chat Model

채팅 테이블 ORM 모델
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING

from docchat.models import BaseModel

if TYPE_CHECKING:
    from docchat.models.message import Message
    from docchat.models.compiled_document import CompiledDocument


class Chat(BaseModel):
    """
    채팅 모델

    문서 한 건을 중심으로 한 대화 세션
    """
    __tablename__ = "chats"

    # Fields
    userId: Mapped[str] = mapped_column(String(26), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Relationships
    messages: Mapped[list["Message"]] = relationship(back_populates="chat", lazy="selectin", cascade="all, delete-orphan")
    compiledDocument: Mapped[Optional["CompiledDocument"]] = relationship(back_populates="chat", lazy="selectin", cascade="all, delete-orphan", uselist=False)
