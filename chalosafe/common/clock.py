"""
Timezone-aware clock helpers.

All timestamps handled by ChaloSafe are UTC-aware datetimes; naive inputs
are interpreted as UTC.
"""

from datetime import datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """현재 UTC 시각을 반환합니다."""
    return datetime.now(timezone.utc)


def to_utc(value: Union[datetime, int, float, str]) -> datetime:
    """
    다양한 타임스탬프 표현을 UTC datetime으로 변환합니다.

    Args:
        value: datetime, Unix epoch(초 또는 밀리초), ISO-8601 문자열

    Returns:
        UTC 기준 timezone-aware datetime

    Raises:
        ValueError: 해석할 수 없는 값
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"unsupported timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = float(value)
        # 밀리초 epoch (예: JavaScript Date.now())
        if seconds > 1e11:
            seconds /= 1000.0
        try:
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"unsupported timestamp: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
