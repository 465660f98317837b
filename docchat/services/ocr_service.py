"""
OCR Service

업로드된 파일에서 텍스트 추출
"""

import asyncio
import base64
import io
import logging
from typing import Optional
from fastapi import HTTPException, status
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage
from pypdf import PdfReader

from docchat.config import settings
from docchat.utils.gcs_storage import BlobStorage, BlobStorageError

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}

VISION_PROMPT = (
    "Transcribe all text visible in this image exactly as written. "
    "Return only the text, without commentary."
)


def file_extension(file_name: str) -> str:
    """파일명에서 소문자 확장자 추출 (없으면 빈 문자열)"""
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


class OCRService:
    """
    텍스트 추출 서비스

    PDF는 pypdf로, 이미지는 vision 모델로 추출합니다.
    """

    _vision_llm: Optional[ChatOpenAI] = None

    @classmethod
    def get_vision_llm(cls) -> ChatOpenAI:
        """
        vision 모델 가져오기 (싱글톤)

        Returns:
            ChatOpenAI: vision 지원 모델 인스턴스
        """
        if cls._vision_llm is None:
            cls._vision_llm = ChatOpenAI(
                api_key=settings.OPENAI_API_KEY,
                model=settings.VISION_MODEL,
                temperature=0.0,
                max_tokens=settings.LLM_MAX_TOKENS
            )
        return cls._vision_llm

    @staticmethod
    async def fetch_file_bytes(blob_pathname: str, purpose: str) -> bytes:
        """
        blob 저장소에서 파일 바이트 가져오기

        Args:
            blob_pathname: blob 경로
            purpose: 로그용 사용 목적

        Returns:
            bytes: 파일 내용

        Raises:
            BlobStorageError: 다운로드 실패 시
        """
        logger.info("Fetching %s for %s", blob_pathname, purpose)
        content = await BlobStorage.fetch_bytes(blob_pathname)
        logger.info("Fetched %d bytes from %s", len(content), blob_pathname)
        return content

    @staticmethod
    def _extract_pdf_text(content: bytes) -> str:
        reader = PdfReader(io.BytesIO(content))
        text = ""
        for page in reader.pages:
            text += (page.extract_text() or "") + "\n"
        return text.strip()

    @staticmethod
    async def _extract_image_text(content: bytes, extension: str) -> str:
        encoded = base64.b64encode(content).decode("ascii")
        message = HumanMessage(content=[
            {"type": "text", "text": VISION_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:{IMAGE_MIME_TYPES[extension]};base64,{encoded}"}},
        ])
        response = await OCRService.get_vision_llm().ainvoke([message])
        return str(response.content).strip()

    @staticmethod
    async def extract_text(blob_pathname: str, original_file_name: str) -> str:
        """
        파일에서 텍스트 추출

        Args:
            blob_pathname: blob 경로
            original_file_name: 업로드 당시 파일명 (타입 판별용)

        Returns:
            str: 추출된 텍스트

        Raises:
            HTTPException: 지원하지 않는 타입(415), 파일 다운로드 실패(502), 추출 실패(500)
        """
        extension = file_extension(original_file_name)
        if extension not in settings.allowed_file_types_list:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"UNSUPPORTED_FILE_TYPE: Only {', '.join(settings.allowed_file_types_list)} files are supported."
            )

        try:
            content = await OCRService.fetch_file_bytes(blob_pathname, f"text extraction of {original_file_name}")
        except BlobStorageError as e:
            logger.error("Could not fetch %s for extraction: %s", blob_pathname, e)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to fetch file from storage."
            )

        try:
            if extension == "pdf":
                text = await asyncio.to_thread(OCRService._extract_pdf_text, content)
            elif extension in IMAGE_MIME_TYPES:
                text = await OCRService._extract_image_text(content, extension)
            else:
                text = content.decode("utf-8", errors="replace")
        except Exception as e:
            logger.exception("Text extraction failed for %s", blob_pathname)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to extract text: {e}"
            )

        logger.info("Extracted %d characters from %s (%s)", len(text), blob_pathname, original_file_name)
        return text
