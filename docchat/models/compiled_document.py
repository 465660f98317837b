"""
CompiledDocument Model

채팅별 컴파일 문서 테이블 ORM 모델 (채팅당 최대 1개)
"""

from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from docchat.models import BaseModel, DB_SCHEMA, JSONType

if TYPE_CHECKING:
    from docchat.models.chat import Chat
    from docchat.models.message import Message


class CompiledDocument(BaseModel):
    """
    컴파일 문서 모델

    원본 파일 메타데이터, 추출 텍스트, 대화 히스토리 스냅샷을 묶은 채팅별 산출물.
    historySnapshot 외의 필드는 최초 생성 이후 변경되지 않습니다.
    """
    __tablename__ = "compiled_documents"

    # Fields
    chatId: Mapped[str] = mapped_column(String(26), ForeignKey(f"{DB_SCHEMA}.chats.id", ondelete="CASCADE"), unique=True)
    sourceMessageId: Mapped[str] = mapped_column(String(26), ForeignKey(f"{DB_SCHEMA}.messages.id", ondelete="RESTRICT"))
    originalFileName: Mapped[str] = mapped_column(String(255))
    extractedText: Mapped[str] = mapped_column(Text)
    sourceFileBlobPathname: Mapped[str] = mapped_column(String(500))
    historySnapshot: Mapped[list] = mapped_column(JSONType, default=list)

    # Relationships
    chat: Mapped["Chat"] = relationship(back_populates="compiledDocument")
    # 원본 메시지는 참조만 함 (삭제 전파 없음)
    sourceMessage: Mapped["Message"] = relationship(lazy="selectin")
