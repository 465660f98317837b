"""
Message Model

메시지 테이블 ORM 모델
"""

from sqlalchemy import String, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
import enum

from docchat.models import BaseModel, DB_SCHEMA

if TYPE_CHECKING:
    from docchat.models.chat import Chat


class MessageSender(str, enum.Enum):
    """메시지 발신자 Enum"""
    USER = "USER"
    BOT = "BOT"


class Message(BaseModel):
    """
    메시지 모델

    채팅의 대화 메시지 (사용자 질문 + AI 응답).
    문서 필드(blobPathname, extractedText, originalFileName)는 생성 시점에만 설정됩니다.
    """
    __tablename__ = "messages"

    # Fields
    chatId: Mapped[str] = mapped_column(String(26), ForeignKey(f"{DB_SCHEMA}.chats.id", ondelete="CASCADE"), index=True)
    sender: Mapped[MessageSender] = mapped_column(SQLEnum(MessageSender, name="message_sender_enum", schema=DB_SCHEMA))
    content: Mapped[str] = mapped_column(Text)
    blobPathname: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    extractedText: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    originalFileName: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    chat: Mapped["Chat"] = relationship(back_populates="messages")

    @property
    def is_document_bearing(self) -> bool:
        """blob 경로와 추출 텍스트를 모두 가진 메시지인지 여부"""
        return self.blobPathname is not None and self.extractedText is not None
