"""
REST API for inspect-mysql: JSON snapshot of the metric registry and health.
"""
from __future__ import annotations

import threading
import time

import uvicorn
from fastapi import FastAPI

from registry import MetricContext


def create_app(ctx: MetricContext) -> FastAPI:
    """Read-only view of ctx. Values may come from two passes if a pass is running."""
    app = FastAPI(
        title="inspect-mysql",
        description="MySQL diagnostics metrics",
        version="1.0.0",
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "timestamp": time.time(), "metrics": len(ctx)}

    @app.get("/api/v1/metrics.json")
    @app.get("/api/v1/metrics.json/")
    def metrics() -> list[dict]:
        return ctx.snapshot()

    return app


def serve_in_background(ctx: MetricContext, host: str, port: int) -> threading.Thread:
    """Start the API on a daemon thread; it dies with the collector process."""
    config = uvicorn.Config(create_app(ctx), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="inspect-mysql-api", daemon=True)
    thread.start()
    return thread
