"""
Compiled Document Schemas

컴파일 문서 관련 응답 스키마
"""

from typing import Optional
from datetime import datetime
from docchat.schemas.common import CamelCaseModel


class HistoryItem(CamelCaseModel):
    """
    히스토리 스냅샷 항목
    """
    sender: str
    content: str
    created_at: str
    is_source_document: Optional[bool] = None
    file_name: Optional[str] = None


class CompiledDocumentResponse(CamelCaseModel):
    """
    컴파일 문서 응답 스키마
    """
    id: str
    chat_id: str
    source_message_id: str
    original_file_name: str
    source_file_blob_pathname: str
    extracted_text: str
    history_snapshot: list[HistoryItem]
    created_at: datetime
    updated_at: datetime
