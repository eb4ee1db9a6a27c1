"""
Retry utilities for ChaloSafe.

Exponential backoff used by the MQTT reconnect loops and the
Home Assistant REST client.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.retry")

T = TypeVar('T')


def backoff_delay(attempt: int, base: float, max_delay: float) -> float:
    """attempt번째(1부터) 재시도 전 대기 시간(초), max_delay로 상한"""
    return min(max_delay, base * (2 ** max(0, attempt - 1)))


async def exponential_backoff(attempt: int, base: float, max_delay: float) -> None:
    """재연결 루프에서 attempt에 해당하는 만큼 대기합니다."""
    await asyncio.sleep(backoff_delay(attempt, base, max_delay))


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    func를 호출하고 retry_on 예외가 나면 최대 max_retries번 다시 호출합니다.

    retry_on에 없는 예외와 마지막 시도의 예외는 그대로 전파됩니다.
    jitter가 켜져 있으면 대기 시간을 50~100% 사이로 흔듭니다.
    """
    for attempt in range(1, max_retries + 2):
        try:
            return await func()
        except retry_on as e:
            if attempt > max_retries:
                log.warning(f"재시도 한도 도달 attempts:{attempt} error:{e}")
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            if jitter:
                delay *= 0.5 + random.random() * 0.5
            log.debug(f"재시도 대기 attempt:{attempt} delay:{delay:.2f}s error:{e}")
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")
