"""
HTTP endpoints for ChaloSafe.

This module implements health, readiness, metrics and info endpoints
for operational visibility, plus a small API over the monitoring
orchestrator (zones, subjects, alerts, acknowledgment, position ingress).
"""

import time
from typing import Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from chalosafe.core.errors import AlertNotFound, InvalidPosition
from chalosafe.core.scoring import score_status
from chalosafe.core.session import SubjectSession
from chalosafe.orchestrators.orchestrator import Orchestrator
from chalosafe.settings import Settings
from chalosafe.observability.logging_setup import get_logger

log = get_logger("chalosafe.http")


def _subject_view(session: SubjectSession) -> dict:
    return {
        "subjectId": session.subject_id,
        "score": session.score,
        "status": score_status(session.score),
        "insideZones": sorted(session.evaluator.membership),
        "openAlerts": len(session.alerts.unacknowledged()),
        "lastTimestamp": session.evaluator.last_timestamp.isoformat()
        if session.evaluator.last_timestamp else None,
        "lastCondition": session.last_condition.model_dump() if session.last_condition else None,
    }


def create_app(settings: Settings, orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="ChaloSafe Geofence Monitoring Service"
    )

    start_time = time.time()

    def _orch() -> Orchestrator:
        if orchestrator is None:
            raise HTTPException(status_code=503, detail="Orchestrator not running")
        return orchestrator

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (오케스트레이터 실행 여부)"""
        if orchestrator is None or not orchestrator.ready:
            return JSONResponse({
                "status": "not_ready",
                "service": settings.observability.service_name,
                "timestamp": time.time()
            }, status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "zones": len(orchestrator.registry),
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level
        })

    @app.get("/zones")
    async def zones():
        """로드된 구역 목록"""
        return [z.model_dump(mode="json") for z in _orch().registry.list_zones()]

    @app.get("/subjects")
    async def subjects():
        """모니터링 중인 대상 목록"""
        orch = _orch()
        return [_subject_view(orch.get_session(sid)) for sid in orch.subjects()]

    @app.get("/subjects/{subject_id}")
    async def subject(subject_id: str):
        session = _orch().get_session(subject_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"unknown subject {subject_id}")
        return _subject_view(session)

    @app.get("/subjects/{subject_id}/alerts")
    async def subject_alerts(subject_id: str, open_only: bool = False):
        """대상의 경보 목록 (open_only=true이면 미확인 경보만)"""
        session = _orch().get_session(subject_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"unknown subject {subject_id}")
        alerts = session.alerts.unacknowledged() if open_only else session.alerts.alerts()
        return [a.model_dump(mode="json") for a in alerts]

    @app.post("/subjects/{subject_id}/alerts/{alert_id}/ack")
    async def acknowledge(subject_id: str, alert_id: str):
        """경보 확인 처리 (이미 확인된 경보는 그대로 반환)"""
        try:
            alert = await _orch().acknowledge(subject_id, alert_id)
        except AlertNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        log.info(f"경보 확인 요청 처리 subject:{subject_id} alert:{alert_id}")
        return alert.model_dump(mode="json")

    @app.post("/subjects/{subject_id}/positions")
    async def submit_position(subject_id: str, payload: dict = Body(...)):
        """위치 샘플 직접 입력"""
        raw = {**payload, "subjectId": subject_id}
        try:
            update = await _orch().submit(raw)
        except InvalidPosition as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return update.model_dump(mode="json")

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "zones": "/zones",
                "subjects": "/subjects",
            }
        })

    return app
