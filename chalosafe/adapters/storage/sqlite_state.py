"""
SQLite-based session state store for ChaloSafe.

This module persists per-subject session state (zone membership, last
processed timestamp, alert history and safety score) so that monitoring
can resume after a process restart.
"""

import time
from typing import List, Optional

import aiosqlite

from chalosafe.core.session import SessionState
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.state")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS session_state (
    subject_id TEXT PRIMARY KEY,
    state TEXT NOT NULL,
    score INTEGER NOT NULL,
    open_alerts INTEGER NOT NULL DEFAULT 0,
    updated_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_session_state_updated ON session_state(updated_at);
"""


class SQLiteStateStore:
    """SQLite 기반 세션 상태 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteStateStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"SQLiteStateStore 스키마 초기화 완료: {self.path}")

    async def save(self, state: SessionState) -> None:
        """
        세션 상태를 저장합니다 (upsert).

        Args:
            state: 저장할 세션 상태
        """
        now = int(time.time())
        open_alerts = sum(1 for a in state.alerts if not a.acknowledged)
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                "INSERT INTO session_state (subject_id, state, score, open_alerts, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(subject_id) DO UPDATE SET "
                "state = excluded.state, score = excluded.score, "
                "open_alerts = excluded.open_alerts, updated_at = excluded.updated_at",
                (state.subject_id, state.model_dump_json(), state.score, open_alerts, now)
            )
            await db.commit()

    async def load(self, subject_id: str) -> Optional[SessionState]:
        """
        세션 상태를 조회합니다.

        Args:
            subject_id: 대상 ID

        Returns:
            저장된 SessionState 또는 None
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT state FROM session_state WHERE subject_id = ?",
                (subject_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return SessionState.model_validate_json(row[0])

    async def delete(self, subject_id: str) -> bool:
        """대상의 세션 상태를 삭제합니다."""
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("DELETE FROM session_state WHERE subject_id = ?", (subject_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def subject_ids(self) -> List[str]:
        """저장된 모든 대상 ID"""
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT subject_id FROM session_state ORDER BY subject_id")
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def get_count(self) -> int:
        """
        현재 저장된 세션 수를 반환합니다.

        Returns:
            항목 수
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM session_state")
            result = await cursor.fetchone()
            return result[0] if result else 0
