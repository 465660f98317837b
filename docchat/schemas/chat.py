"""
Chat Schemas

채팅 관련 요청/응답 스키마
"""

from pydantic import Field
from typing import Optional
from datetime import datetime
from docchat.schemas.common import CamelCaseModel


class ChatCreate(CamelCaseModel):
    """
    채팅 생성 요청 스키마 (문서 필수)
    """
    blob_pathname: str = Field(..., min_length=1, description="업로드된 파일의 blob 경로")
    extracted_text: str = Field(..., description="OCR 추출 텍스트")
    original_file_name: Optional[str] = Field(None, max_length=255, description="업로드 당시 파일명")
    initial_user_message: Optional[str] = Field(None, max_length=2000, description="첫 사용자 메시지")


class ChatResponse(CamelCaseModel):
    """
    채팅 응답 스키마 (목록용)
    """
    id: str
    title: Optional[str]
    user_id: str
    has_compiled_document: bool = False
    created_at: datetime
    updated_at: datetime


class DocumentItem(CamelCaseModel):
    """
    문서 항목 (문서를 포함한 메시지 기준)
    """
    document_id: str
    chat_id: str
    file_name: str
    upload_date: datetime
    chat_title: Optional[str] = None
