"""
OCR Schemas

파일 업로드 및 텍스트 추출 요청/응답 스키마
"""

from pydantic import Field
from docchat.schemas.common import CamelCaseModel


class FileUploadResponse(CamelCaseModel):
    """
    파일 업로드 응답 스키마
    """
    blob_pathname: str
    original_file_name: str
    content_type: str
    file_size: int


class ExtractTextRequest(CamelCaseModel):
    """
    텍스트 추출 요청 스키마
    """
    blob_pathname: str = Field(..., min_length=1, description="업로드된 파일의 blob 경로")
    original_file_name: str = Field(..., min_length=1, description="업로드 당시 파일명")


class ExtractTextResponse(CamelCaseModel):
    """
    텍스트 추출 응답 스키마
    """
    text: str
