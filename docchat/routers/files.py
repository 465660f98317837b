"""
Files Router

파일 업로드 및 텍스트 추출 API 엔드포인트
"""

import logging
from fastapi import APIRouter, File, HTTPException, UploadFile, status

from docchat.config import settings
from docchat.models import generate_ulid
from docchat.services.ocr_service import OCRService, file_extension
from docchat.schemas.ocr import ExtractTextRequest, ExtractTextResponse, FileUploadResponse
from docchat.schemas.common import SuccessResponse
from docchat.utils.gcs_storage import BlobStorage, BlobStorageError, CONTENT_TYPE_MAP

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["files"])


@router.post("/files", status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...)
) -> SuccessResponse[FileUploadResponse]:
    """
    파일 업로드 (blob 저장소)

    Args:
        file: 업로드할 파일 (PDF, PNG, JPEG, Text)

    Returns:
        SuccessResponse: blob 경로와 원본 파일명

    Raises:
        HTTPException: 파일 타입이나 크기가 유효하지 않은 경우, 업로드 실패
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required."
        )

    extension = file_extension(file.filename)
    if extension not in settings.allowed_file_types_list:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"UNSUPPORTED_FILE_TYPE: Only {', '.join(settings.allowed_file_types_list)} files are supported."
        )

    content = await file.read()
    if len(content) > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"FILE_TOO_LARGE: Maximum file size is {settings.MAX_FILE_SIZE / 1024 / 1024}MB."
        )

    try:
        blob_pathname = await BlobStorage.upload_file(content, generate_ulid(), extension)
    except BlobStorageError as e:
        logger.error("Upload of %s failed: %s", file.filename, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to upload file to storage."
        )

    return SuccessResponse(data=FileUploadResponse(
        blob_pathname=blob_pathname,
        original_file_name=file.filename,
        content_type=CONTENT_TYPE_MAP.get(extension, "application/octet-stream"),
        file_size=len(content)
    ))


@router.post("/ocr/extract-text")
async def extract_text(
    payload: ExtractTextRequest
) -> SuccessResponse[ExtractTextResponse]:
    """
    업로드된 파일에서 텍스트 추출

    Args:
        payload: blob 경로와 원본 파일명

    Returns:
        SuccessResponse: 추출된 텍스트

    Raises:
        HTTPException: 지원하지 않는 파일 타입, 파일 다운로드/추출 실패
    """
    logger.info("Received request to extract text from %s (original: %s)", payload.blob_pathname, payload.original_file_name)
    text = await OCRService.extract_text(payload.blob_pathname, payload.original_file_name)
    return SuccessResponse(data=ExtractTextResponse(text=text))
