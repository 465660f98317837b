"""
Application Configuration Module

환경 변수를 로드하고 타입 안전한 설정 관리를 제공합니다.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """
    애플리케이션 설정 클래스

    .env.development 파일에서 환경 변수를 자동으로 로드합니다.
    """

    # Database Configuration
    DATABASE_URL: str
    DB_SCHEMA: str = "public"

    # Application Configuration
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # GCP Configuration
    GCP_PROJECT_ID: str
    GCP_BUCKET_NAME: str
    GOOGLE_APPLICATION_CREDENTIALS: str

    # OpenAI API Keys
    OPENAI_API_KEY: str

    # File Upload Settings
    ALLOWED_FILE_TYPES: str = "pdf,png,jpg,jpeg,txt"
    MAX_FILE_SIZE: int = 52428800  # 50MB

    # LLM Settings
    LLM_MODEL: str = "gpt-4o-mini"
    VISION_MODEL: str = "gpt-4o-mini"
    LLM_TEMPERATURE: float = 0.0
    LLM_MAX_TOKENS: int = 1000

    # Conversation History
    MAX_CONVERSATION_HISTORY: int = 10
    CHAT_TITLE_MAX_LENGTH: int = 50

    model_config = SettingsConfigDict(
        env_file=".env.development",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        CORS용 허용된 origin 목록을 반환합니다.

        Returns:
            List[str]: 허용된 origin URL 목록
        """
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def allowed_file_types_list(self) -> List[str]:
        """
        허용된 파일 타입 목록을 반환합니다.

        Returns:
            List[str]: 허용된 파일 확장자 목록
        """
        return [file_type.strip().lower() for file_type in self.ALLOWED_FILE_TYPES.split(",")]


# 전역 설정 인스턴스
settings: Settings = Settings()
