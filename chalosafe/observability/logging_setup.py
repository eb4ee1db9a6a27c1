"""
Logging setup for ChaloSafe.

loguru is the only logging backend: stdlib records (uvicorn, aiosqlite,
asyncio) are routed into it, and components obtain a named logger with
``get_logger``. Records processed for a subject carry ``extra[subject]``.
"""

from __future__ import annotations
import logging
import sys
from typing import Optional

from loguru import logger

_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "aiosqlite", "asyncio")


class InterceptHandler(logging.Handler):
    """stdlib logging 레코드를 loguru로 전달"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def _route_stdlib() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _STDLIB_LOGGERS:
        std = logging.getLogger(name)
        std.handlers = [InterceptHandler()]
        std.propagate = False


def _console_format(record) -> str:
    # 대상 ID가 바인딩된 레코드만 subject 칸을 표시
    subject = " [{extra[subject]}]" if record["extra"].get("subject") else ""
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level:<7}</level> | "
        "<cyan>{extra[name]}</cyan>" + subject + " - "
        "<level>{message}</level>\n{exception}"
    )


def setup_logging_dev(log_level: str = "INFO") -> None:
    """개발용 컬러 콘솔 출력."""
    logger.remove()
    logger.configure(extra={"name": "chalosafe"})
    logger.add(sys.stderr, format=_console_format, colorize=True,
               backtrace=True, diagnose=False, level=log_level.upper())
    _route_stdlib()


def setup_logging_json(log_level: str = "INFO") -> None:
    """운영용 JSON 한 줄 로그."""
    logger.remove()
    logger.configure(extra={"name": "chalosafe"})
    logger.add(sys.stdout, serialize=True, level=log_level.upper(), enqueue=True)
    _route_stdlib()


def setup_logging(log_level: str = "INFO", json_logs: bool = False,
                  log_file: Optional[str] = None) -> None:
    """
    로깅을 초기화합니다.

    Args:
        log_level: 최소 로그 레벨
        json_logs: True면 JSON 한 줄 로그, False면 컬러 콘솔
        log_file: 지정하면 회전되는 JSON 파일 로그를 추가
    """
    if json_logs:
        setup_logging_json(log_level)
    else:
        setup_logging_dev(log_level)
    if log_file:
        logger.add(log_file, serialize=True, level=log_level.upper(),
                   rotation="10 MB", retention=5, enqueue=True)


def get_logger(name: str = "chalosafe", **ctx):
    """이름(및 선택적 컨텍스트)이 바인딩된 logger."""
    return logger.bind(name=name, **ctx)


def with_context(**ctx):
    """블록 안에서 기록되는 모든 로그에 컨텍스트를 추가하는 컨텍스트 매니저."""
    return logger.contextualize(**ctx)
