"""
LLM Service

채팅 응답 생성 (OpenAI Chat Completion)
"""

import logging
from typing import Optional
from langchain_openai import ChatOpenAI
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from docchat.config import settings
from docchat.models.message import MessageSender

logger = logging.getLogger(__name__)

# 너무 긴 OCR 텍스트는 프롬프트에서 잘라냄
MAX_SOURCE_TEXT_CHARS = 12000


class LLMServiceError(Exception):
    """LLM 응답 생성 실패"""


class LLMService:
    """
    LLM 응답 생성 서비스
    """

    _llm: Optional[ChatOpenAI] = None

    @classmethod
    def get_llm(cls) -> ChatOpenAI:
        """
        OpenAI LLM 가져오기 (싱글톤)

        Returns:
            ChatOpenAI: LLM 인스턴스
        """
        if cls._llm is None:
            cls._llm = ChatOpenAI(
                api_key=settings.OPENAI_API_KEY,
                model=settings.LLM_MODEL,
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS
            )
        return cls._llm

    @staticmethod
    def build_messages(
        user_text: str,
        prior_turns: list[dict],
        source_text: Optional[str] = None,
        source_blob_pathname: Optional[str] = None
    ) -> list[BaseMessage]:
        """
        LLM 입력 메시지 구성

        Args:
            user_text: 현재 사용자 메시지
            prior_turns: 이전 대화 [{"sender": MessageSender, "content": str}, ...]
            source_text: 이번 메시지에 첨부된 문서의 추출 텍스트
            source_blob_pathname: 이번 메시지에 첨부된 파일의 blob 경로

        Returns:
            list[BaseMessage]: system + history + human 메시지
        """
        system_prompt = (
            "You are a helpful assistant that answers questions about documents "
            "the user has uploaded. Use the document text when it is relevant and "
            "say so when the answer is not in the document."
        )
        if source_text:
            text = source_text
            if len(text) > MAX_SOURCE_TEXT_CHARS:
                text = text[:MAX_SOURCE_TEXT_CHARS] + "..."
            system_prompt += "\n\nExtracted text of the uploaded document"
            if source_blob_pathname:
                system_prompt += f" ({source_blob_pathname})"
            system_prompt += f":\n\n{text}"

        messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        for turn in prior_turns:
            if turn["sender"] == MessageSender.USER:
                messages.append(HumanMessage(content=turn["content"]))
            else:
                messages.append(AIMessage(content=turn["content"]))
        messages.append(HumanMessage(content=user_text))
        return messages

    @staticmethod
    async def get_completion(
        user_text: str,
        prior_turns: list[dict],
        source_text: Optional[str] = None,
        source_blob_pathname: Optional[str] = None
    ) -> str:
        """
        LLM 응답 생성

        Raises:
            LLMServiceError: OpenAI 호출 실패 시
        """
        messages = LLMService.build_messages(user_text, prior_turns, source_text, source_blob_pathname)
        try:
            response = await LLMService.get_llm().ainvoke(messages)
        except Exception as e:
            logger.exception("Chat completion failed")
            raise LLMServiceError(str(e)) from e
        return response.content
