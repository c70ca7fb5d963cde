"""
ScreenGuardAgent Main Application
=================================

FastAPI entry point for the shoulder-surfer detection agent.

The MonitoringService is constructed inside the lifespan and stored on
app.state; endpoints reach it through the request, never through
module-level globals.

Endpoints:
    GET  /                        - Service information
    GET  /health                  - Liveness probe
    GET  /status                  - Current security status snapshot
    GET  /metrics                 - Pipeline counters
    GET  /events                  - Recent state transitions
    POST /monitoring/start        - Start monitoring
    POST /monitoring/stop         - Stop monitoring
    POST /observations            - Submit one face-count sample
    POST /notifications/enabled   - Enable or disable notifications
    POST /notifications/test      - Send a test notification
    WS   /ws/status               - Periodic status push
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from screenguard_agent.agent.state_machine import MonitoringStateError
from screenguard_agent.config import Settings, load_config, setup_logging
from screenguard_agent.models.input import ObservationMessage
from screenguard_agent.service import MonitoringService
from screenguard_agent.stream.consumer import SensorConsumer


logger = logging.getLogger(__name__)


class NotificationToggle(BaseModel):
    """Body of POST /notifications/enabled."""

    enabled: bool


def _service(request: Request) -> MonitoringService:
    return request.app.state.service


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    service: Optional[MonitoringService] = None,
    autostart: bool = False,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (loaded from config.yaml/env if None)
        service: Pre-built service, mainly for tests
        autostart: Start monitoring as soon as the app is up
    """
    if settings is None:
        settings = service.settings if service is not None else load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        app.state.startup_time = time.time()
        app.state.service = service or MonitoringService(settings)
        app.state.consumer = None
        app.state.consumer_task = None
        logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

        if autostart:
            app.state.service.start()

        if settings.sensor.url:
            consumer = SensorConsumer(
                url=settings.sensor.url,
                sink=app.state.service.submit,
                reconnect_backoff_ms=settings.sensor.reconnect_backoff_ms,
                max_reconnect_attempts=settings.sensor.max_reconnect_attempts,
            )
            app.state.consumer = consumer
            app.state.consumer_task = asyncio.create_task(consumer.run(), name="sensor_consumer")

        yield

        logger.info("Shutting down gracefully...")
        if app.state.consumer is not None:
            await app.state.consumer.stop()
            try:
                await asyncio.wait_for(app.state.consumer_task, timeout=5.0)
            except asyncio.TimeoutError:
                app.state.consumer_task.cancel()
        app.state.service.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="ScreenGuardAgent",
        description="Shoulder-surfer detection decision pipeline",
        version=settings.agent.version,
        lifespan=lifespan,
    )
    _register_routes(app, settings)
    return app


def _register_routes(app: FastAPI, settings: Settings) -> None:

    # -------------------------------------------------------------------------
    # HTTP Endpoints
    # -------------------------------------------------------------------------

    @app.get("/")
    async def root(request: Request) -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "ScreenGuardAgent",
            "version": settings.agent.version,
            "name": settings.agent.name,
            "monitoring": _service(request).is_monitoring,
            "sensor_url": settings.sensor.url,
        })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe - always 200 while the process is alive."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        })

    @app.get("/status")
    async def status(request: Request) -> JSONResponse:
        """Current security status for UI and menu polling."""
        return JSONResponse(_service(request).status().model_dump(mode="json"))

    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Detailed metrics for observability."""
        payload = _service(request).get_metrics()
        consumer = request.app.state.consumer
        if consumer is not None:
            payload["sensor_connected"] = consumer.connected
            payload["sensor"] = consumer.metrics.to_dict()
        return JSONResponse(payload)

    @app.get("/events")
    async def events(request: Request) -> JSONResponse:
        """Recent state transitions, oldest first."""
        return JSONResponse({"events": _service(request).recent_events()})

    @app.post("/monitoring/start")
    async def start_monitoring(request: Request) -> JSONResponse:
        try:
            _service(request).start()
        except MonitoringStateError as e:
            return JSONResponse({"error": str(e)}, status_code=409)
        return JSONResponse({"monitoring": True})

    @app.post("/monitoring/stop")
    async def stop_monitoring(request: Request) -> JSONResponse:
        _service(request).stop()
        return JSONResponse({"monitoring": False})

    @app.post("/observations")
    async def submit_observation(message: ObservationMessage, request: Request) -> JSONResponse:
        """Submit one face-count sample through the throttle."""
        service = _service(request)
        accepted = service.submit(message.face_count)
        return JSONResponse({
            "accepted": accepted,
            "state": service.current_state.value,
        })

    @app.post("/notifications/enabled")
    async def toggle_notifications(toggle: NotificationToggle, request: Request) -> JSONResponse:
        _service(request).set_notifications_enabled(toggle.enabled)
        return JSONResponse({"notifications_enabled": toggle.enabled})

    @app.post("/notifications/test")
    async def test_notification(request: Request) -> JSONResponse:
        sent = _service(request).send_test_notification()
        return JSONResponse({"sent": sent}, status_code=200 if sent else 502)

    # -------------------------------------------------------------------------
    # WebSocket Endpoints
    # -------------------------------------------------------------------------

    @app.websocket("/ws/status")
    async def status_stream(websocket: WebSocket) -> None:
        """WebSocket endpoint pushing the status snapshot periodically."""
        await websocket.accept()
        logger.info("Client connected to /ws/status")
        service: MonitoringService = websocket.app.state.service

        try:
            while True:
                await websocket.send_json(service.status().model_dump(mode="json"))
                # Waiting on receive notices a client disconnect before the next push
                try:
                    await asyncio.wait_for(
                        websocket.receive_text(),
                        timeout=settings.server.status_push_interval_sec,
                    )
                except asyncio.TimeoutError:
                    pass
        except WebSocketDisconnect:
            pass
        finally:
            logger.info("Client disconnected from /ws/status")


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    import uvicorn

    settings = load_config()
    setup_logging(settings)

    port = int(os.environ.get("PORT", settings.server.port))
    uvicorn.run(
        create_app(settings, autostart=True),
        host=settings.server.host,
        port=port,
    )


if __name__ == "__main__":
    main()
