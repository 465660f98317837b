"""
GCS Storage Utility

Google Cloud Storage 파일 업로드/다운로드 유틸리티
"""

import asyncio
import logging
from typing import Optional
from google.cloud import storage

from docchat.config import settings

logger = logging.getLogger(__name__)

CONTENT_TYPE_MAP = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "txt": "text/plain",
}


class BlobStorageError(Exception):
    """blob 업로드/다운로드 실패"""


class BlobStorage:
    """
    GCS 파일 저장소 헬퍼 클래스

    blob 경로(pathname)는 버킷 내부 경로("user-files/<id>.<ext>")입니다.
    공개 URL 형태가 들어와도 버킷 이후 경로만 사용합니다.
    """

    _client: Optional[storage.Client] = None

    @classmethod
    def get_bucket(cls) -> storage.Bucket:
        """
        GCS 버킷 가져오기 (클라이언트는 싱글톤)

        Returns:
            storage.Bucket: 설정된 버킷

        Raises:
            BlobStorageError: GCP 설정이 누락된 경우
        """
        if not all([settings.GCP_PROJECT_ID, settings.GCP_BUCKET_NAME, settings.GOOGLE_APPLICATION_CREDENTIALS]):
            raise BlobStorageError("GCP configuration is missing in environment variables")

        if cls._client is None:
            cls._client = storage.Client.from_service_account_json(settings.GOOGLE_APPLICATION_CREDENTIALS)
        return cls._client.bucket(settings.GCP_BUCKET_NAME)

    @staticmethod
    def to_blob_name(blob_pathname: str) -> str:
        # https://storage.googleapis.com/bucket-name/user-files/uuid.pdf -> user-files/uuid.pdf
        return blob_pathname.split(f"{settings.GCP_BUCKET_NAME}/")[-1]

    @staticmethod
    async def upload_file(
        content: bytes,
        file_id: str,
        file_extension: str
    ) -> str:
        """
        파일을 GCS에 업로드

        Args:
            content: 파일 바이트
            file_id: 파일 ID (ULID)
            file_extension: 파일 확장자

        Returns:
            str: blob 경로 (user-files/<id>.<ext>)

        Raises:
            BlobStorageError: 업로드 실패 시
        """
        blob_name = f"user-files/{file_id}.{file_extension}"
        content_type = CONTENT_TYPE_MAP.get(file_extension, "application/octet-stream")

        try:
            bucket = BlobStorage.get_bucket()
            blob = bucket.blob(blob_name)
            # google-cloud-storage 클라이언트는 동기 API
            await asyncio.to_thread(blob.upload_from_string, content, content_type=content_type)
        except BlobStorageError:
            raise
        except Exception as e:
            raise BlobStorageError(f"Failed to upload file to GCS: {e}") from e

        logger.info("Uploaded %s (%d bytes) to bucket %s", blob_name, len(content), settings.GCP_BUCKET_NAME)
        return blob_name

    @staticmethod
    async def fetch_bytes(blob_pathname: str) -> bytes:
        """
        GCS에서 파일 바이트 다운로드

        Args:
            blob_pathname: blob 경로 또는 GCS URL

        Returns:
            bytes: 파일 내용

        Raises:
            BlobStorageError: 다운로드 실패 시
        """
        blob_name = BlobStorage.to_blob_name(blob_pathname)
        try:
            bucket = BlobStorage.get_bucket()
            blob = bucket.blob(blob_name)
            return await asyncio.to_thread(blob.download_as_bytes)
        except BlobStorageError:
            raise
        except Exception as e:
            raise BlobStorageError(f"Failed to download {blob_name} from GCS: {e}") from e
