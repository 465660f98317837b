"""
Messages Router

메시지 관련 API 엔드포인트
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docchat.database import get_db
from docchat.services.message_service import MessageService
from docchat.schemas.message import MessageCreate, MessageCreateResponse
from docchat.schemas.common import SuccessResponse

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("")
async def create_message(
    message_data: MessageCreate,
    user_id: str = Query(..., description="사용자 ID"),
    db: AsyncSession = Depends(get_db)
) -> SuccessResponse[MessageCreateResponse]:
    """
    메시지 전송 (AI 응답 생성 및 컴파일 문서 동기화)

    Args:
        message_data: 메시지 생성 데이터
        user_id: 사용자 ID
        db: 데이터베이스 세션

    Returns:
        SuccessResponse: 사용자/BOT 메시지 (새 채팅이면 chat 정보 포함)

    Raises:
        HTTPException: 문서 없이 새 채팅을 시작하거나, 채팅을 찾을 수 없거나 권한이 없는 경우
    """
    result = await MessageService.create_message(db, user_id, message_data)
    return SuccessResponse(data=result)
