"""
Docchat Server - FastAPI Application Entry Point
"""

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docchat.config import settings
from docchat.logging_config import setup_logging
from docchat.routers import chats, files, messages
from docchat.schemas.common import ErrorDetail, ErrorResponse

setup_logging()
logger = logging.getLogger(__name__)

# FastAPI 앱 생성
app: FastAPI = FastAPI(
    title="Docchat Server",
    description="문서 업로드 기반 채팅 및 컴파일 문서(PDF) 다운로드 서비스",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS 미들웨어 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# 라우터 등록
app.include_router(chats.router)
app.include_router(messages.router)
app.include_router(files.router)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    HTTPException을 공통 에러 응답 형식으로 변환
    """
    body = ErrorResponse(
        error=ErrorDetail(
            code=HTTPStatus(exc.status_code).name,
            message=str(exc.detail)
        )
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=exc.headers)


@app.get("/")
async def root() -> dict[str, str]:
    """
    루트 엔드포인트

    Returns:
        dict: 환영 메시지
    """
    return {
        "message": "Welcome to Docchat Server",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    헬스 체크 엔드포인트

    Returns:
        dict: 서버 상태
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT
    }


@app.on_event("startup")
async def startup_event() -> None:
    """
    서버 시작 시 실행되는 이벤트

    데이터베이스 연결을 테스트하고 테이블을 생성합니다.
    """
    from docchat.database import engine, Base
    from sqlalchemy import text
    import docchat.models  # 모든 모델 import

    try:
        # 데이터베이스 연결 테스트
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")

        # 스키마 생성 (PostgreSQL, 없으면)
        if engine.dialect.name == "postgresql":
            async with engine.begin() as conn:
                await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {settings.DB_SCHEMA}"))
            logger.info("Schema %s checked/created", settings.DB_SCHEMA)

        # 테이블 생성
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/checked (schema %s)", settings.DB_SCHEMA)

    except Exception:
        logger.exception("Database initialization failed")
        raise


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """
    서버 종료 시 실행되는 이벤트

    데이터베이스 연결을 정리합니다.
    """
    from docchat.database import engine

    await engine.dispose()
    logger.info("Database engine disposed")
