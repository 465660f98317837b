"""
Logging Configuration

표준 logging 모듈 설정
"""

import logging

from docchat.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """
    루트 로거 설정 (LOG_LEVEL 환경 변수 기준)

    uvicorn이 이미 핸들러를 등록한 경우에도 레벨만 맞춰 줍니다.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("docchat").setLevel(level)
