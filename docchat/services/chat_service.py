"""
Chat Service

채팅 관련 비즈니스 로직 (채팅 생성, 소유권 검증, 목록 조회)
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from fastapi import HTTPException, status

from docchat.config import settings
from docchat.models.chat import Chat
from docchat.models.message import Message
from docchat.schemas.chat import ChatResponse, DocumentItem

logger = logging.getLogger(__name__)


class ChatService:
    """
    채팅 비즈니스 로직 처리 서비스
    채팅이 없어도 빈 배열을 반환
    + 사용자 인증은 API 게이트웨이 레이어에서 처리
    """

    @staticmethod
    def generate_chat_title(text: str) -> str:
        """
        채팅 제목 생성 (최대 CHAT_TITLE_MAX_LENGTH자, 넘치면 "..." 추가)

        Args:
            text: 첫 메시지 내용 또는 "Document: <파일명>"

        Returns:
            str: 채팅 제목
        """
        max_length = settings.CHAT_TITLE_MAX_LENGTH
        if len(text) > max_length:
            return f"{text[:max_length]}..."
        return text

    @staticmethod
    async def validate_chat_ownership(
        db: AsyncSession,
        chat_id: str,
        user_id: str
    ) -> Chat:
        """
        채팅 소유권 검증 (Access Guard)

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            user_id: 사용자 ID

        Returns:
            Chat: 검증된 채팅 객체

        Raises:
            HTTPException: 채팅을 찾을 수 없는 경우 (404), 소유자가 아닌 경우 (403)
        """
        query = select(Chat).where(
            and_(
                Chat.id == chat_id,
                Chat.deletedAt.is_(None)
            )
        )
        result = await db.execute(query)
        chat = result.scalar_one_or_none()

        if not chat:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Chat with ID {chat_id} not found."
            )

        if chat.userId != user_id:
            logger.warning("User %s attempted to access chat %s owned by another user", user_id, chat_id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to access this chat."
            )

        return chat

    @staticmethod
    async def find_or_create_chat(
        db: AsyncSession,
        user_id: str,
        chat_id: Optional[str],
        first_message: Optional[str] = None,
        file_name_for_title: Optional[str] = None
    ) -> tuple[Chat, bool]:
        """
        기존 채팅 조회 또는 새 채팅 생성

        Args:
            db: 데이터베이스 세션
            user_id: 사용자 ID
            chat_id: 기존 채팅 ID (None이면 새로 생성)
            first_message: 제목 생성용 첫 메시지
            file_name_for_title: 제목 생성용 파일명 (우선 사용)

        Returns:
            tuple: (채팅 객체, 새로 생성 여부)

        Raises:
            HTTPException: 기존 채팅을 찾을 수 없거나 권한이 없는 경우
        """
        if chat_id:
            chat = await ChatService.validate_chat_ownership(db, chat_id, user_id)
            return chat, False

        title = "New Chat"
        if file_name_for_title:
            title = ChatService.generate_chat_title(f"Document: {file_name_for_title}")
        elif first_message:
            title = ChatService.generate_chat_title(first_message)

        new_chat = Chat(userId=user_id, title=title)
        db.add(new_chat)
        await db.commit()
        await db.refresh(new_chat)

        logger.info("Created new chat %s for user %s with title %r", new_chat.id, user_id, new_chat.title)
        return new_chat, True

    @staticmethod
    async def get_chats(
        db: AsyncSession,
        user_id: str,
        page: int,
        limit: int
    ) -> list[ChatResponse]:
        """
        채팅 목록 조회 (최근 수정 순)

        Args:
            db: 데이터베이스 세션
            user_id: 사용자 ID
            page: 페이지 번호
            limit: 페이지당 개수

        Returns:
            list[ChatResponse]: 채팅 목록
        """
        offset = (page - 1) * limit

        query = (
            select(Chat)
            .where(
                and_(
                    Chat.deletedAt.is_(None),
                    Chat.userId == user_id
                )
            )
            .order_by(Chat.updatedAt.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(query)
        chats = result.scalars().all()

        return [
            ChatResponse(
                id=chat.id,
                title=chat.title,
                user_id=chat.userId,
                has_compiled_document=chat.compiledDocument is not None,
                created_at=chat.createdAt,
                updated_at=chat.updatedAt
            )
            for chat in chats
        ]

    @staticmethod
    async def get_document_items(
        db: AsyncSession,
        user_id: str
    ) -> list[DocumentItem]:
        """
        사용자의 문서 목록 조회 (파일이 첨부된 메시지 기준, 최신순)

        Args:
            db: 데이터베이스 세션
            user_id: 사용자 ID

        Returns:
            list[DocumentItem]: 문서 항목 목록
        """
        query = (
            select(Message, Chat.title)
            .join(Chat, Message.chatId == Chat.id)
            .where(
                and_(
                    Chat.userId == user_id,
                    Chat.deletedAt.is_(None),
                    Message.deletedAt.is_(None),
                    Message.blobPathname.is_not(None)
                )
            )
            .order_by(Message.createdAt.desc())
        )
        result = await db.execute(query)

        return [
            DocumentItem(
                document_id=message.id,
                chat_id=message.chatId,
                file_name=message.originalFileName or message.blobPathname,
                upload_date=message.createdAt,
                chat_title=chat_title
            )
            for message, chat_title in result.all()
        ]
