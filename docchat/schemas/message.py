"""
Message Schemas

메시지 관련 요청/응답 스키마
"""

from pydantic import Field, model_validator
from typing import Optional
from datetime import datetime
from docchat.schemas.common import CamelCaseModel


class MessageCreate(CamelCaseModel):
    """
    메시지 생성 요청 스키마

    blob_pathname과 extracted_text는 함께 있거나 함께 없어야 합니다.
    """
    content: str = Field(..., min_length=1, max_length=2000, description="메시지 내용")
    chat_id: Optional[str] = Field(None, description="채팅 ID (null이면 새 채팅 생성)")
    blob_pathname: Optional[str] = Field(None, description="업로드된 파일의 blob 경로")
    extracted_text: Optional[str] = Field(None, description="OCR 추출 텍스트")
    original_file_name: Optional[str] = Field(None, max_length=255, description="업로드 당시 파일명")

    @model_validator(mode="after")
    def check_document_fields(self) -> "MessageCreate":
        if (self.blob_pathname is None) != (self.extracted_text is None):
            raise ValueError("blobPathname and extractedText must be provided together.")
        return self

    @property
    def has_document(self) -> bool:
        return self.blob_pathname is not None


class MessageResponse(CamelCaseModel):
    """
    메시지 응답 스키마
    """
    id: str
    chat_id: str
    sender: str
    content: str
    blob_pathname: Optional[str] = None
    original_file_name: Optional[str] = None
    has_extracted_text: bool = False
    created_at: datetime


class ChatCreateInfo(CamelCaseModel):
    """
    채팅 생성 정보 (메시지 생성 시 반환)
    """
    id: str
    title: Optional[str]
    created_at: datetime


class MessageCreateResponse(CamelCaseModel):
    """
    메시지 생성 응답 스키마
    """
    chat_id: str
    chat_title: Optional[str]
    is_new_chat: bool
    chat: Optional[ChatCreateInfo] = None
    user_message: MessageResponse
    bot_message: MessageResponse
    compiled_document_status: str
