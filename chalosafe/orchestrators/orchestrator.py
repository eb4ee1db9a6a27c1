"""
Monitoring orchestrator for ChaloSafe.

This module coordinates the flow between ports and adapters:
position sources -> queue -> normalize -> per-subject session
(geofence -> alerts -> score) -> alert sink + state store.
"""

import asyncio
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from chalosafe.common.clock import utc_now
from chalosafe.core.errors import AlertNotFound, InvalidPosition
from chalosafe.core.models import Alert, Zone
from chalosafe.core.normalize import to_position_sample
from chalosafe.core.session import SessionUpdate, SubjectSession
from chalosafe.core.zones import ZoneRegistry, ZoneRejection
from chalosafe.observability import metrics
from chalosafe.observability.logging_setup import get_logger, with_context
from chalosafe.ports.dispatch import AlertSinkPort
from chalosafe.ports.positions import PositionSourcePort
from chalosafe.ports.state import StateStorePort

log = get_logger("chalosafe.orchestrator")


def subject_from_topic(topic: Optional[str]) -> Optional[str]:
    """MQTT 토픽의 마지막 세그먼트를 대상 ID로 사용합니다 (와일드카드 제외)."""
    if not topic:
        return None
    tail = topic.rstrip("/").rsplit("/", 1)[-1]
    return tail if tail and tail not in ("#", "+") else None


class Orchestrator:
    """지오펜스 모니터링 오케스트레이터"""

    def __init__(self,
                 registry: ZoneRegistry,
                 *,
                 sources: Sequence[PositionSourcePort] = (),
                 sink: Optional[AlertSinkPort] = None,
                 store: Optional[StateStorePort] = None,
                 session_options: Optional[dict] = None,
                 queue_maxsize: int = 1000,
                 recovery_interval_sec: float = 300.0):
        """
        초기화합니다.

        Args:
            registry: 공유 구역 레지스트리 (읽기 전용 스냅샷)
            sources: 위치 소스 포트 목록
            sink: 경보/점수 발송 포트 (None이면 발송 생략)
            store: 세션 상태 저장소 (None이면 메모리에만 유지)
            session_options: SubjectSession 생성 옵션
            queue_maxsize: 큐 최대 크기
            recovery_interval_sec: 주기 틱 간격 (0 이하이면 비활성)
        """
        self.registry = registry
        self.sources = list(sources)
        self.sink = sink
        self.store = store
        self.session_options = dict(session_options or {})
        self.q: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self.recovery_interval_sec = recovery_interval_sec

        self._sessions: Dict[str, SubjectSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: List[asyncio.Task] = []
        self.start_time = time.time()
        self.ready = False

        metrics.zones_loaded.set(len(registry))
        log.info("오케스트레이터 초기화됨")

    async def start(self) -> None:
        """
        오케스트레이터를 시작합니다.

        수집 -> 큐 -> 정규화 -> 세션 처리 -> 발송/저장 파이프라인과 주기 틱을 실행합니다.
        """
        if self.store is not None:
            await self.store.init()
            await self.restore_sessions()

        self._tasks = [asyncio.create_task(self._producer(src)) for src in self.sources]
        self._tasks.append(asyncio.create_task(self._consumer()))
        self._tasks.append(asyncio.create_task(self._update_metrics()))
        if self.recovery_interval_sec > 0:
            self._tasks.append(asyncio.create_task(self._recovery_loop()))

        self.ready = True
        log.info(f"오케스트레이터 시작됨 sources:{len(self.sources)} zones:{len(self.registry)}")
        try:
            await asyncio.gather(*self._tasks)
        finally:
            self.ready = False

    async def stop(self) -> None:
        """모든 소스와 태스크를 중지합니다."""
        for src in self.sources:
            await src.stop()
        for task in self._tasks:
            task.cancel()
        self.ready = False
        log.info("오케스트레이터 중지됨")

    async def _producer(self, source: PositionSourcePort) -> None:
        """원시 위치 샘플을 큐에 추가하는 프로듀서"""
        name = type(source).__name__
        async for raw in source.recv():
            metrics.positions_received.labels(source=name).inc()
            try:
                self.q.put_nowait(raw)
                metrics.queue_depth.set(self.q.qsize())
            except asyncio.QueueFull:
                metrics.positions_dropped.inc()
                log.warning("큐가 가득 찼습니다. 위치 샘플을 드롭합니다.")

    async def _consumer(self) -> None:
        """큐에서 샘플을 순서대로 소비하는 컨슈머"""
        while True:
            raw = await self.q.get()
            try:
                await self.handle(raw)
            except Exception as e:
                # 샘플 하나의 실패가 모니터링 루프를 중단시키지 않도록 함
                log.exception(f"위치 샘플 처리 중 예상치 못한 오류: {e}")
            finally:
                self.q.task_done()
                metrics.queue_depth.set(self.q.qsize())

    def _lock_for(self, subject_id: str) -> asyncio.Lock:
        lock = self._locks.get(subject_id)
        if lock is None:
            lock = self._locks[subject_id] = asyncio.Lock()
        return lock

    async def _session_for(self, subject_id: str) -> SubjectSession:
        """대상의 세션을 가져오거나 저장소에서 복구/새로 생성합니다."""
        session = self._sessions.get(subject_id)
        if session is not None:
            return session

        state = await self.store.load(subject_id) if self.store is not None else None
        if state is not None:
            session = SubjectSession.restore(state, self.registry, **self.session_options)
        else:
            session = SubjectSession(subject_id, self.registry, **self.session_options)
            log.info(f"새 세션 생성 subject:{subject_id}")
        self._sessions[subject_id] = session
        metrics.active_subjects.set(len(self._sessions))
        return session

    async def restore_sessions(self) -> int:
        """저장소에 남아 있는 모든 대상의 세션을 복구합니다 (재시작 후 주기 틱 대상 포함)."""
        if self.store is None:
            return 0
        restored = 0
        for subject_id in await self.store.subject_ids():
            if subject_id not in self._sessions:
                await self._session_for(subject_id)
                restored += 1
        log.info(f"저장된 세션 복구 완료 count:{restored}")
        return restored

    async def handle(self, raw: dict) -> Optional[SessionUpdate]:
        """
        원시 위치 샘플 하나를 처리합니다.

        Args:
            raw: 위치 소스에서 받은 딕셔너리

        Returns:
            처리 결과, 샘플이 유효하지 않으면 None
        """
        try:
            sample = to_position_sample(raw, default_subject=subject_from_topic(raw.get("_topic")))
        except InvalidPosition as e:
            metrics.positions_invalid.labels(reason="position").inc()
            log.warning(f"유효하지 않은 위치 샘플 드롭: {e}")
            return None
        except ValueError as e:
            metrics.positions_invalid.labels(reason="malformed").inc()
            log.warning(f"해석할 수 없는 위치 샘플 드롭: {e}")
            return None

        t0 = time.perf_counter()
        with with_context(subject=sample.subject_id):
            async with self._lock_for(sample.subject_id):
                session = await self._session_for(sample.subject_id)
                score_before = session.score
                suppressed_before = session.alerts.suppressed_count

                with metrics.evaluate_seconds.time():
                    update = session.process(sample)

                if update.stale:
                    metrics.positions_stale.inc()
                    log.debug(f"순서가 뒤바뀐 샘플 드롭 subject:{sample.subject_id}")
                    return update

                suppressed = session.alerts.suppressed_count - suppressed_before
                if suppressed:
                    metrics.alerts_suppressed.inc(suppressed)
                self._record(update)

                await self._publish(update, score_changed=update.score != score_before)
                await self._persist(session)

        metrics.end_to_end_seconds.observe(time.perf_counter() - t0)
        return update

    async def submit(self, raw: dict) -> SessionUpdate:
        """
        HTTP 등 직접 입력된 샘플을 즉시 처리합니다.

        Raises:
            InvalidPosition: 좌표가 범위를 벗어난 경우
            ValueError: 해석할 수 없는 샘플
        """
        # 검증 오류를 호출자에게 그대로 전달하기 위해 먼저 정규화
        to_position_sample(raw, default_subject=subject_from_topic(raw.get("_topic")))
        metrics.positions_received.labels(source="http").inc()
        update = await self.handle(raw)
        if update is None:
            raise ValueError(f"sample could not be processed: {raw!r}")
        return update

    def _record(self, update: SessionUpdate) -> None:
        for event in update.transitions:
            zone = self.registry.get(event.zone_id)
            classification = zone.classification if zone else "unknown"
            metrics.transitions.labels(direction=event.direction, classification=classification).inc()
        for alert in update.alerts:
            metrics.alerts_raised.labels(severity=alert.severity,
                                         classification=alert.zone_classification).inc()

    async def _publish(self, update: SessionUpdate, *, score_changed: bool) -> None:
        if self.sink is None:
            return
        for event in update.transitions:
            await self.sink.publish_transition(update.subject_id, event)
        for alert in update.alerts:
            await self.sink.publish_alert(alert)
        if score_changed:
            await self.sink.publish_score(update.subject_id, update.score)

    async def _persist(self, session: SubjectSession) -> None:
        if self.store is None:
            return
        await self.store.save(session.snapshot())

    async def acknowledge(self, subject_id: str, alert_id: str) -> Alert:
        """
        대상의 경보를 확인 처리합니다.

        Raises:
            AlertNotFound: 대상 또는 경보가 존재하지 않는 경우
        """
        async with self._lock_for(subject_id):
            session = self._sessions.get(subject_id)
            if session is None and self.store is not None:
                if await self.store.load(subject_id) is not None:
                    session = await self._session_for(subject_id)
            if session is None:
                raise AlertNotFound(alert_id)

            already = session.alerts.get(alert_id)
            was_acknowledged = already is not None and already.acknowledged
            alert = session.acknowledge(alert_id)
            if not was_acknowledged:
                metrics.alerts_acknowledged.inc()
                if self.sink is not None:
                    await self.sink.publish_alert(alert)
                await self._persist(session)
            return alert

    async def tick_all(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        모든 세션에 주기 틱을 적용합니다.

        Returns:
            대상별 새 점수
        """
        now = now or utc_now()
        scores: Dict[str, int] = {}
        for subject_id in list(self._sessions):
            async with self._lock_for(subject_id):
                session = self._sessions[subject_id]
                before = session.score
                scores[subject_id] = session.tick(now)
                if scores[subject_id] != before:
                    if self.sink is not None:
                        await self.sink.publish_score(subject_id, scores[subject_id])
                    await self._persist(session)
        return scores

    async def _recovery_loop(self) -> None:
        while True:
            await asyncio.sleep(self.recovery_interval_sec)
            scores = await self.tick_all()
            log.debug(f"주기 틱 적용 subjects:{len(scores)}")

    async def _update_metrics(self) -> None:
        while True:
            metrics.uptime_seconds.set(time.time() - self.start_time)
            metrics.queue_depth.set(self.q.qsize())
            await asyncio.sleep(10)

    def reload_zones(self, zones: Iterable[Zone]) -> List[ZoneRejection]:
        """구역 집합을 통째로 교체합니다 (기존 세션은 다음 샘플부터 새 구역으로 평가)."""
        rejections = self.registry.load_zones(zones)
        metrics.zones_rejected.inc(len(rejections))
        metrics.zones_loaded.set(len(self.registry))
        return rejections

    def get_session(self, subject_id: str) -> Optional[SubjectSession]:
        return self._sessions.get(subject_id)

    def subjects(self) -> List[str]:
        return sorted(self._sessions)
