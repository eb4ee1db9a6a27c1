"""
SQLite-based outbox for ChaloSafe.

Durable queue of MQTT messages (alerts, transitions, score updates)
waiting to be delivered to the local broker. Messages that share a
coalesce key replace each other while undelivered, so only the latest
score of a subject is ever sent after a broker outage.
"""

import time
from dataclasses import dataclass
from typing import Optional

import aiosqlite

from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.outbox")

SCHEMA = """
CREATE TABLE IF NOT EXISTS outbox (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    payload BLOB NOT NULL,
    qos INTEGER NOT NULL DEFAULT 1,
    retain INTEGER NOT NULL DEFAULT 0,
    coalesce_key TEXT,
    enqueued_at REAL NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT
);
CREATE INDEX IF NOT EXISTS idx_outbox_order ON outbox(id);
CREATE INDEX IF NOT EXISTS idx_outbox_coalesce ON outbox(coalesce_key);
"""

_COLUMNS = "id, topic, payload, qos, retain, attempts, coalesce_key, last_error"


@dataclass
class OutboxItem:
    """발송 대기 메시지"""
    id: int
    topic: str
    payload: bytes
    qos: int
    retain: bool
    attempts: int
    coalesce_key: Optional[str] = None
    last_error: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "OutboxItem":
        return cls(
            id=row[0],
            topic=row[1],
            payload=bytes(row[2]),
            qos=row[3],
            retain=bool(row[4]),
            attempts=row[5],
            coalesce_key=row[6],
            last_error=row[7],
        )


class SQLiteOutbox:
    """aiosqlite 기반 발송 대기열"""

    def __init__(self, path: str):
        self.path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"Outbox 준비 완료 path:{self.path}")

    async def enqueue(self, topic: str, payload: bytes, qos: int = 1, retain: bool = False,
                      coalesce_key: Optional[str] = None) -> int:
        """
        메시지를 대기열에 추가합니다.

        Args:
            topic: 발송 토픽
            payload: 메시지 본문
            qos: QoS 레벨
            retain: retain 플래그
            coalesce_key: 같은 키의 미발송 메시지를 대체할 키 (None이면 대체 없음)

        Returns:
            생성된 항목의 ID
        """
        async with aiosqlite.connect(self.path) as db:
            if coalesce_key is not None:
                cursor = await db.execute("DELETE FROM outbox WHERE coalesce_key = ?", (coalesce_key,))
                if cursor.rowcount:
                    log.debug(f"미발송 메시지 대체 key:{coalesce_key} replaced:{cursor.rowcount}")
            cursor = await db.execute(
                "INSERT INTO outbox (topic, payload, qos, retain, coalesce_key, enqueued_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (topic, payload, qos, int(retain), coalesce_key, time.time()),
            )
            await db.commit()
            return cursor.lastrowid

    async def peek_oldest(self) -> Optional[OutboxItem]:
        """가장 먼저 들어온 항목 (삭제하지 않음)"""
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(f"SELECT {_COLUMNS} FROM outbox ORDER BY id ASC LIMIT 1")
            row = await cursor.fetchone()
        return OutboxItem.from_row(row) if row else None

    async def mark_attempt(self, oid: int, error: Optional[str] = None) -> None:
        """발송 실패를 기록합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                "UPDATE outbox SET attempts = attempts + 1, last_error = ? WHERE id = ?",
                (error, oid),
            )
            await db.commit()

    async def delete(self, oid: int) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.execute("DELETE FROM outbox WHERE id = ?", (oid,))
            await db.commit()

    async def get_count(self) -> int:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM outbox")
            (count,) = await cursor.fetchone()
        return count
