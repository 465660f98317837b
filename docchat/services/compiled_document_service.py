"""
Compiled Document Service

채팅별 컴파일 문서 동기화 및 다운로드 번들 생성 로직
"""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, and_
from fastapi import HTTPException, status

from docchat.models.message import Message
from docchat.models.compiled_document import CompiledDocument
from docchat.schemas.compiled_document import CompiledDocumentResponse, HistoryItem
from docchat.services.chat_service import ChatService
from docchat.services.ocr_service import OCRService, file_extension
from docchat.services.pdf_service import CompiledPdfData, OriginalFileType, PdfRenderError, PdfService
from docchat.utils.gcs_storage import BlobStorageError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

FILE_TYPE_BY_EXTENSION = {
    "pdf": OriginalFileType.PDF,
    "png": OriginalFileType.PNG,
    "jpg": OriginalFileType.JPEG,
    "jpeg": OriginalFileType.JPEG,
}


class CompiledDocumentState(str, enum.Enum):
    """채팅의 컴파일 문서 상태 (NO -> HAS 전이는 되돌릴 수 없음)"""
    NO_COMPILED_DOCUMENT = "no_compiled_document"
    HAS_COMPILED_DOCUMENT = "has_compiled_document"


class InsertOutcome(str, enum.Enum):
    """컴파일 문서 INSERT 결과"""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class SyncOutcome(str, enum.Enum):
    """동기화 결과"""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_NO_SOURCE = "skipped_no_source"
    SKIPPED_INCOMPLETE_SOURCE = "skipped_incomplete_source"
    FAILED = "failed"


class SourceMessageIncompleteError(Exception):
    """원본 메시지에 blob 경로 또는 추출 텍스트가 없어 동기화할 수 없음"""

    def __init__(self, chat_id: str, message_id: str):
        self.chat_id = chat_id
        self.message_id = message_id
        super().__init__(
            f"Source message {message_id} for chat {chat_id} lacks blobPathname or extractedText."
        )


@dataclass
class SyncResult:
    outcome: SyncOutcome
    compiled_document: Optional[CompiledDocument] = None


@dataclass
class DownloadBundle:
    file_name: str
    buffer: bytes
    content_type: str = PDF_CONTENT_TYPE


def classify_file_type(file_name: str) -> OriginalFileType:
    """확장자로 원본 파일 타입 판별"""
    return FILE_TYPE_BY_EXTENSION.get(file_extension(file_name), OriginalFileType.UNSUPPORTED)


def build_download_file_name(original_file_name: str, chat_id: str) -> str:
    """
    다운로드 파일명 생성

    compiled_<확장자 뺀 원본 파일명>_<채팅 ID 앞 8자>.pdf
    """
    stem = re.sub(r"\.[^/.]+$", "", original_file_name)
    stem = re.sub(r"[^A-Za-z0-9._-]", "_", stem) or "document"
    return f"compiled_{stem}_{chat_id[:8]}.pdf"


class CompiledDocumentService:
    """
    컴파일 문서 비즈니스 로직 처리 서비스
    """

    @staticmethod
    async def _load_compiled_document(db: AsyncSession, chat_id: str) -> Optional[CompiledDocument]:
        query = (
            select(CompiledDocument)
            .where(CompiledDocument.chatId == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def _build_history_snapshot(
        db: AsyncSession,
        chat_id: str,
        source_message: Message
    ) -> list[dict]:
        """
        채팅 전체 메시지로 히스토리 스냅샷 생성 (생성 순)

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            source_message: 원본 메시지

        Returns:
            list[dict]: [{"sender", "content", "createdAt"(, "isSourceDocument", "fileName")}, ...]
        """
        query = (
            select(Message)
            .where(
                and_(
                    Message.chatId == chat_id,
                    Message.deletedAt.is_(None)
                )
            )
            .order_by(Message.createdAt.asc(), Message.id.asc())
        )
        result = await db.execute(query)
        messages = result.scalars().all()

        snapshot = []
        for message in messages:
            item = {
                "sender": message.sender.value,
                "content": message.content,
                "createdAt": message.createdAt.isoformat(),
            }
            if message.id == source_message.id:
                item["isSourceDocument"] = True
                item["fileName"] = source_message.originalFileName or source_message.blobPathname
            snapshot.append(item)
        return snapshot

    @staticmethod
    async def _insert_compiled_document(
        db: AsyncSession,
        chat_id: str,
        source_message: Message,
        snapshot: list[dict]
    ) -> tuple[InsertOutcome, Optional[CompiledDocument]]:
        """
        컴파일 문서 INSERT (chatId 유니크 제약 위반은 ALREADY_EXISTS로 반환)

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            source_message: 원본 메시지
            snapshot: 히스토리 스냅샷

        Returns:
            tuple: (INSERT 결과, 생성된 컴파일 문서 또는 None)
        """
        compiled_document = CompiledDocument(
            chatId=chat_id,
            sourceMessageId=source_message.id,
            originalFileName=source_message.originalFileName or source_message.blobPathname,
            extractedText=source_message.extractedText,
            sourceFileBlobPathname=source_message.blobPathname,
            historySnapshot=snapshot
        )
        try:
            async with db.begin_nested():
                db.add(compiled_document)
        except IntegrityError:
            logger.info("CompiledDocument for chat %s was created concurrently", chat_id)
            return InsertOutcome.ALREADY_EXISTS, None

        return InsertOutcome.CREATED, compiled_document

    @staticmethod
    async def _update_snapshot(
        db: AsyncSession,
        compiled_document: CompiledDocument,
        source_message: Message
    ) -> CompiledDocument:
        # historySnapshot, updatedAt 외의 필드는 변경하지 않음
        compiled_document.historySnapshot = await CompiledDocumentService._build_history_snapshot(
            db, compiled_document.chatId, source_message
        )
        compiled_document.updatedAt = datetime.utcnow()
        await db.commit()
        return compiled_document

    @staticmethod
    async def synchronize(
        db: AsyncSession,
        chat_id: str,
        candidate: Optional[Message]
    ) -> SyncResult:
        """
        채팅의 컴파일 문서 생성 또는 히스토리 스냅샷 갱신

        원본 메시지 선택 규칙 (먼저 일치하는 규칙 적용):
        1. 컴파일 문서가 이미 있으면 기록된 원본 메시지를 사용 (후보 메시지는 무시)
        2. 없고 후보 메시지가 문서를 가진 메시지이면 후보를 원본으로 사용
        3. 그 외에는 건너뜀

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            candidate: 원본 후보 메시지 (보통 방금 저장된 사용자 메시지)

        Returns:
            SyncResult: 동기화 결과와 컴파일 문서

        Raises:
            SourceMessageIncompleteError: 선택된 원본 메시지에 문서 필드가 없는 경우
        """
        existing = await CompiledDocumentService._load_compiled_document(db, chat_id)
        state = (
            CompiledDocumentState.HAS_COMPILED_DOCUMENT
            if existing is not None
            else CompiledDocumentState.NO_COMPILED_DOCUMENT
        )

        if state == CompiledDocumentState.HAS_COMPILED_DOCUMENT:
            source_message = existing.sourceMessage
        elif candidate is not None and candidate.is_document_bearing:
            source_message = candidate
        else:
            if candidate is not None and (candidate.blobPathname or candidate.extractedText is not None):
                logger.warning(
                    "Message %s in chat %s carries an incomplete document (blob=%s, text=%s). Sync skipped.",
                    candidate.id, chat_id, candidate.blobPathname is not None, candidate.extractedText is not None
                )
                return SyncResult(SyncOutcome.SKIPPED_INCOMPLETE_SOURCE)
            logger.warning("No source message identified for CompiledDocument of chat %s. Sync skipped.", chat_id)
            return SyncResult(SyncOutcome.SKIPPED_NO_SOURCE)

        if source_message is None or not source_message.is_document_bearing:
            raise SourceMessageIncompleteError(
                chat_id, existing.sourceMessageId if source_message is None else source_message.id
            )

        if state == CompiledDocumentState.HAS_COMPILED_DOCUMENT:
            updated = await CompiledDocumentService._update_snapshot(db, existing, source_message)
            logger.info("Updated CompiledDocument %s for chat %s (%d entries)", updated.id, chat_id, len(updated.historySnapshot))
            return SyncResult(SyncOutcome.UPDATED, updated)

        snapshot = await CompiledDocumentService._build_history_snapshot(db, chat_id, source_message)
        outcome, created = await CompiledDocumentService._insert_compiled_document(
            db, chat_id, source_message, snapshot
        )

        if outcome == InsertOutcome.CREATED:
            await db.commit()
            logger.info(
                "Created CompiledDocument %s for chat %s from source message %s",
                created.id, chat_id, source_message.id
            )
            return SyncResult(SyncOutcome.CREATED, created)

        # 동시 생성된 문서의 원본 메시지를 기준으로 갱신
        existing = await CompiledDocumentService._load_compiled_document(db, chat_id)
        updated = await CompiledDocumentService._update_snapshot(db, existing, existing.sourceMessage)
        logger.info("Updated concurrently created CompiledDocument %s for chat %s", updated.id, chat_id)
        return SyncResult(SyncOutcome.UPDATED, updated)

    @staticmethod
    async def get_compiled_document(
        db: AsyncSession,
        chat_id: str,
        user_id: str
    ) -> CompiledDocumentResponse:
        """
        컴파일 문서 조회

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            user_id: 사용자 ID

        Returns:
            CompiledDocumentResponse: 컴파일 문서 정보

        Raises:
            HTTPException: 채팅 또는 컴파일 문서가 없는 경우 (404), 권한이 없는 경우 (403)
        """
        await ChatService.validate_chat_ownership(db, chat_id, user_id)

        compiled_document = await CompiledDocumentService._load_compiled_document(db, chat_id)
        if not compiled_document:
            logger.warning("Compiled document not found for chat %s", chat_id)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Compiled document not found."
            )

        return CompiledDocumentResponse(
            id=compiled_document.id,
            chat_id=compiled_document.chatId,
            source_message_id=compiled_document.sourceMessageId,
            original_file_name=compiled_document.originalFileName,
            source_file_blob_pathname=compiled_document.sourceFileBlobPathname,
            extracted_text=compiled_document.extractedText,
            history_snapshot=[HistoryItem.model_validate(item) for item in compiled_document.historySnapshot or []],
            created_at=compiled_document.createdAt,
            updated_at=compiled_document.updatedAt
        )

    @staticmethod
    async def assemble_bundle(
        db: AsyncSession,
        chat_id: str,
        user_id: str
    ) -> DownloadBundle:
        """
        컴파일 문서 다운로드용 PDF 번들 생성 (읽기 전용)

        원본 파일을 가져오지 못하면 원본 없이 PDF를 생성합니다.

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            user_id: 요청 사용자 ID

        Returns:
            DownloadBundle: 파일명, PDF 바이트, content type

        Raises:
            HTTPException: 채팅/컴파일 문서가 없는 경우 (404), 권한이 없는 경우 (403), PDF 생성 실패 (500)
        """
        await ChatService.validate_chat_ownership(db, chat_id, user_id)

        compiled_document = await CompiledDocumentService._load_compiled_document(db, chat_id)
        if not compiled_document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Compiled document for chat ID {chat_id} not found."
            )

        original_file_bytes = None
        original_file_error = None
        file_type = classify_file_type(compiled_document.originalFileName)

        if not compiled_document.sourceFileBlobPathname:
            original_file_error = "Source file location is missing."
        else:
            try:
                original_file_bytes = await OCRService.fetch_file_bytes(
                    compiled_document.sourceFileBlobPathname,
                    f"embedding in compiled PDF for chat {chat_id}"
                )
            except BlobStorageError as e:
                logger.error(
                    "Failed to fetch original file %s for chat %s: %s",
                    compiled_document.sourceFileBlobPathname, chat_id, e
                )
                original_file_error = "Original file could not be retrieved from storage."

        # 태그는 확장자가 아니라 실제로 임베딩할 내용 기준
        if original_file_bytes is None:
            file_type = OriginalFileType.UNSUPPORTED
        elif file_type == OriginalFileType.UNSUPPORTED:
            logger.warning(
                "Original file type of %s is unsupported for embedding",
                compiled_document.originalFileName
            )

        payload = CompiledPdfData(
            original_file_name=compiled_document.originalFileName,
            extracted_text=compiled_document.extractedText,
            history=list(compiled_document.historySnapshot or []),
            original_file_bytes=original_file_bytes,
            file_type=file_type,
            original_file_error=original_file_error
        )

        try:
            buffer = await PdfService.render_compiled_pdf(payload)
        except PdfRenderError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to generate compiled PDF."
            )

        file_name = build_download_file_name(compiled_document.originalFileName, chat_id)
        logger.info("Generated compiled PDF %s (%d bytes) for chat %s", file_name, len(buffer), chat_id)

        return DownloadBundle(file_name=file_name, buffer=buffer)
