"""
Message Service

메시지 관련 비즈니스 로직
"""

import asyncio
import logging
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, and_
from fastapi import HTTPException, status

from docchat import database
from docchat.config import settings
from docchat.models.chat import Chat
from docchat.models.message import Message, MessageSender
from docchat.schemas.chat import ChatCreate, ChatResponse
from docchat.schemas.message import (
    MessageCreate,
    MessageResponse,
    MessageCreateResponse,
    ChatCreateInfo
)
from docchat.services.chat_service import ChatService
from docchat.services.compiled_document_service import (
    CompiledDocumentService,
    SourceMessageIncompleteError,
    SyncOutcome
)
from docchat.services.llm_service import LLMService, LLMServiceError

logger = logging.getLogger(__name__)


def to_message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        chat_id=message.chatId,
        sender=message.sender.value,
        content=message.content,
        blob_pathname=message.blobPathname,
        original_file_name=message.originalFileName,
        has_extracted_text=message.extractedText is not None,
        created_at=message.createdAt
    )


class MessageService:
    """
    메시지 비즈니스 로직 처리 서비스
    """

    @staticmethod
    async def _update_chat_timestamp(db: AsyncSession, chat_id: str):
        """
        채팅 updatedAt 갱신

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
        """
        chat_update_query = select(Chat).where(Chat.id == chat_id)
        chat_update_result = await db.execute(chat_update_query)
        chat_to_update = chat_update_result.scalar_one()
        chat_to_update.updatedAt = datetime.utcnow()

    @staticmethod
    async def _get_conversation_history(
        db: AsyncSession,
        chat_id: str,
        exclude_message_id: str,
        limit: int
    ) -> list[dict]:
        """
        채팅의 최근 대화 히스토리 조회 (현재 메시지 제외)

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            exclude_message_id: 제외할 메시지 ID (방금 저장한 사용자 메시지)
            limit: 조회할 최대 메시지 쌍 수 (USER+BOT 쌍)

        Returns:
            list[dict]: 대화 히스토리 [{"sender": MessageSender.USER, "content": "..."}, ...]
        """
        query = (
            select(Message)
            .where(
                and_(
                    Message.chatId == chat_id,
                    Message.id != exclude_message_id,
                    Message.deletedAt.is_(None)
                )
            )
            .order_by(Message.createdAt.desc(), Message.id.desc())  # 최신순
            .limit(limit * 2)
        )

        result = await db.execute(query)
        messages = list(reversed(result.scalars().all()))

        return [
            {
                "sender": msg.sender,
                "content": msg.content
            }
            for msg in messages
        ]

    @staticmethod
    async def _generate_bot_message(
        db: AsyncSession,
        chat_id: str,
        user_message: Message
    ) -> Message:
        """
        AI 응답 생성 및 저장

        LLM 호출이 실패해도 안내 메시지를 BOT 메시지로 저장합니다.

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            user_message: 방금 저장된 사용자 메시지

        Returns:
            Message: 생성된 BOT 메시지
        """
        conversation_history = await MessageService._get_conversation_history(
            db,
            chat_id,
            exclude_message_id=user_message.id,
            limit=settings.MAX_CONVERSATION_HISTORY
        )

        try:
            content = await LLMService.get_completion(
                user_message.content,
                conversation_history,
                user_message.extractedText,
                user_message.blobPathname
            )
        except LLMServiceError as e:
            logger.error("Failed to get AI completion for chat %s: %s", chat_id, e)
            content = "Sorry, an error occurred while generating the AI response. Please try again."

        bot_message = Message(
            chatId=chat_id,
            sender=MessageSender.BOT,
            content=content
        )
        db.add(bot_message)

        # 채팅 updatedAt 갱신
        await MessageService._update_chat_timestamp(db, chat_id)

        await db.commit()
        await db.refresh(bot_message)
        logger.info("Saved bot message %s for chat %s", bot_message.id, chat_id)
        return bot_message

    @staticmethod
    async def _synchronize_compiled_document(chat_id: str, candidate_id: str) -> SyncOutcome:
        """
        별도 세션에서 컴파일 문서 동기화 (실패해도 메시지 전송 흐름은 계속)

        Args:
            chat_id: 채팅 ID
            candidate_id: 원본 후보 메시지 ID

        Returns:
            SyncOutcome: 동기화 결과
        """
        async with database.AsyncSessionLocal() as session:
            try:
                candidate = await session.get(Message, candidate_id)
                result = await CompiledDocumentService.synchronize(session, chat_id, candidate)
                return result.outcome
            except SourceMessageIncompleteError as e:
                await session.rollback()
                logger.warning("Cannot synchronize CompiledDocument: %s", e)
                return SyncOutcome.SKIPPED_INCOMPLETE_SOURCE
            except SQLAlchemyError:
                await session.rollback()
                logger.exception("Error synchronizing CompiledDocument for chat %s", chat_id)
                return SyncOutcome.FAILED
            except Exception:
                await session.rollback()
                logger.exception("Unexpected error synchronizing CompiledDocument for chat %s", chat_id)
                return SyncOutcome.FAILED

    @staticmethod
    async def get_messages(
        db: AsyncSession,
        chat_id: str,
        user_id: str
    ) -> list[MessageResponse]:
        """
        채팅의 메시지 목록 조회 (생성 순)

        Args:
            db: 데이터베이스 세션
            chat_id: 채팅 ID
            user_id: 사용자 ID

        Returns:
            list[MessageResponse]: 메시지 목록

        Raises:
            HTTPException: 채팅을 찾을 수 없거나 권한이 없는 경우
        """
        await ChatService.validate_chat_ownership(db, chat_id, user_id)

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
        return [to_message_response(message) for message in result.scalars().all()]

    @staticmethod
    async def create_message(
        db: AsyncSession,
        user_id: str,
        message_data: MessageCreate
    ) -> MessageCreateResponse:
        """
        메시지 생성, AI 응답 생성, 컴파일 문서 동기화
        - chat_id가 null이면 새 채팅 생성 (문서 필수)
        - chat_id가 있으면 기존 채팅에 추가

        Args:
            db: 데이터베이스 세션
            user_id: 사용자 ID
            message_data: 메시지 생성 데이터

        Returns:
            MessageCreateResponse: 사용자/BOT 메시지와 컴파일 문서 동기화 결과

        Raises:
            HTTPException: 문서 없이 새 채팅을 시작하거나, 채팅을 찾을 수 없거나 권한이 없는 경우
        """
        if message_data.chat_id is None and not message_data.has_document:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A document is required to start a new chat."
            )

        chat, is_new_chat = await ChatService.find_or_create_chat(
            db,
            user_id,
            message_data.chat_id,
            first_message=message_data.content,
            file_name_for_title=message_data.original_file_name or message_data.blob_pathname
        )

        # 사용자 메시지 저장
        user_message = Message(
            chatId=chat.id,
            sender=MessageSender.USER,
            content=message_data.content,
            blobPathname=message_data.blob_pathname,
            extractedText=message_data.extracted_text,
            originalFileName=message_data.original_file_name
        )
        db.add(user_message)
        await db.commit()
        await db.refresh(user_message)
        logger.info(
            "Saved user message %s for chat %s (blob: %s, original: %s)",
            user_message.id, chat.id, user_message.blobPathname, user_message.originalFileName
        )

        bot_message = await MessageService._generate_bot_message(db, chat.id, user_message)

        # 요청이 취소되어도 동기화는 끝까지 진행
        sync_outcome = await asyncio.shield(
            MessageService._synchronize_compiled_document(chat.id, user_message.id)
        )

        return MessageCreateResponse(
            chat_id=chat.id,
            chat_title=chat.title,
            is_new_chat=is_new_chat,
            chat=ChatCreateInfo(
                id=chat.id,
                title=chat.title,
                created_at=chat.createdAt
            ) if is_new_chat else None,
            user_message=to_message_response(user_message),
            bot_message=to_message_response(bot_message),
            compiled_document_status=sync_outcome.value
        )

    @staticmethod
    async def create_chat_with_document(
        db: AsyncSession,
        user_id: str,
        chat_data: ChatCreate
    ) -> ChatResponse:
        """
        문서로 새 채팅 생성 (첫 메시지 + 컴파일 문서)

        Args:
            db: 데이터베이스 세션
            user_id: 사용자 ID
            chat_data: 채팅 생성 데이터

        Returns:
            ChatResponse: 생성된 채팅 정보
        """
        file_name = chat_data.original_file_name or chat_data.blob_pathname
        chat, _ = await ChatService.find_or_create_chat(
            db, user_id, None, file_name_for_title=file_name
        )

        first_message = Message(
            chatId=chat.id,
            sender=MessageSender.USER,
            content=chat_data.initial_user_message or f"Uploaded: {file_name}",
            blobPathname=chat_data.blob_pathname,
            extractedText=chat_data.extracted_text,
            originalFileName=chat_data.original_file_name
        )
        db.add(first_message)
        await db.commit()
        await db.refresh(first_message)
        logger.info("Created first message %s for new chat %s", first_message.id, chat.id)

        sync_outcome = await asyncio.shield(
            MessageService._synchronize_compiled_document(chat.id, first_message.id)
        )

        return ChatResponse(
            id=chat.id,
            title=chat.title,
            user_id=chat.userId,
            has_compiled_document=sync_outcome in (SyncOutcome.CREATED, SyncOutcome.UPDATED),
            created_at=chat.createdAt,
            updated_at=chat.updatedAt
        )
