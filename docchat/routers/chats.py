"""
Chats Router

채팅 관련 API 엔드포인트 (Controller Layer)
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from docchat.database import get_db
from docchat.services.chat_service import ChatService
from docchat.services.message_service import MessageService
from docchat.services.compiled_document_service import CompiledDocumentService
from docchat.schemas.chat import ChatCreate, ChatResponse, DocumentItem
from docchat.schemas.message import MessageResponse
from docchat.schemas.compiled_document import CompiledDocumentResponse
from docchat.schemas.common import SuccessResponse

router = APIRouter(prefix="/api/v1/chats", tags=["chats"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_chat(
    chat_data: ChatCreate,
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[ChatResponse]:
    """
    문서로 새 채팅 생성

    Args:
        chat_data: 채팅 생성 데이터 (blob 경로, 추출 텍스트 필수)
        user_id: 사용자 ID
        db: 데이터베이스 세션

    Returns:
        SuccessResponse: 생성된 채팅 정보
    """
    chat = await MessageService.create_chat_with_document(db, user_id, chat_data)
    return SuccessResponse(data=chat)


@router.get("")
async def get_chats(
    user_id: str = Query(..., description="사용자 ID"),
    page: int = Query(1, ge=1, description="페이지 번호"),
    limit: int = Query(20, ge=1, le=100, description="페이지당 개수"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[list[ChatResponse]]:
    """
    채팅 목록 조회

    Args:
        user_id: 사용자 ID
        page: 페이지 번호
        limit: 페이지당 개수
        db: 데이터베이스 세션

    Returns:
        SuccessResponse: 채팅 목록
    """
    chats = await ChatService.get_chats(db, user_id, page, limit)
    return SuccessResponse(data=chats)


@router.get("/documents")
async def get_document_items(
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[list[DocumentItem]]:
    """
    사용자의 업로드 문서 목록 조회
    """
    items = await ChatService.get_document_items(db, user_id)
    return SuccessResponse(data=items)


@router.get("/{chat_id}/messages")
async def get_chat_messages(
    chat_id: str,
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[list[MessageResponse]]:
    """
    채팅의 메시지 목록 조회

    Raises:
        HTTPException: 채팅을 찾을 수 없거나 권한이 없는 경우
    """
    messages = await MessageService.get_messages(db, chat_id, user_id)
    return SuccessResponse(data=messages)


@router.get("/{chat_id}/compiled-document")
async def get_compiled_document(
    chat_id: str,
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[CompiledDocumentResponse]:
    """
    컴파일 문서 조회

    Raises:
        HTTPException: 채팅/컴파일 문서가 없거나 권한이 없는 경우
    """
    compiled_document = await CompiledDocumentService.get_compiled_document(db, chat_id, user_id)
    return SuccessResponse(data=compiled_document)


@router.get("/{chat_id}/compiled-document/download")
async def download_compiled_document(
    chat_id: str,
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> Response:
    """
    컴파일 문서 PDF 다운로드

    Args:
        chat_id: 채팅 ID
        user_id: 사용자 ID
        db: 데이터베이스 세션

    Returns:
        Response: application/pdf 첨부 파일

    Raises:
        HTTPException: 채팅/컴파일 문서가 없는 경우, 권한이 없는 경우, PDF 생성 실패
    """
    bundle = await CompiledDocumentService.assemble_bundle(db, chat_id, user_id)
    return Response(
        content=bundle.buffer,
        media_type=bundle.content_type,
        headers={"Content-Disposition": f'attachment; filename="{bundle.file_name}"'}
    )
