"""
FastAPI + Uvicorn ASGI application — the PDP as a web service.

Architecture:
  - FastAPI: health probes, administrative reload and decision endpoints
  - Uvicorn: production ASGI server (handles signals, graceful shutdown)
  - APScheduler: BackgroundScheduler refreshing profiles and policies
  - K8s Probes: liveness (scheduler running) + readiness (policies loaded)

Entry point for production: uvicorn authn_profiles.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from apscheduler.schedulers.base import BaseScheduler
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from authn_profiles import __version__
from authn_profiles.config import AppSettings
from authn_profiles.domain.errors import AuthenticationProfileError
from authn_profiles.main import Components, build_components, configure_structlog
from authn_profiles.scheduler import create_scheduler

# ─────────────────────── Global State ───────────────────────
# Set during app startup and read by the endpoints.

_components: Components | None = None
_scheduler: BaseScheduler | None = None
_error_message: str | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: load settings, profiles and policies; start the refresh scheduler.
    Shutdown: stop the scheduler.
    """
    global _components, _scheduler, _error_message

    log.info("asgi.startup", phase="lifespan_startup")
    _error_message = None

    try:
        settings = AppSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)

    log.info(
        "asgi.startup_config",
        version=__version__,
        log_level=settings.log_level,
        trust_anchors=settings.trust_anchors.directory,
        policy_file=settings.policy.file,
        refresh_interval_seconds=settings.trust_anchors.refresh_interval_seconds,
        run_on_startup=settings.run_on_startup,
    )

    try:
        components = build_components(settings)
        scheduler = create_scheduler(
            refresh_fn=components.refresh,
            interval_seconds=settings.trust_anchors.refresh_interval_seconds,
            run_on_startup=settings.run_on_startup,
            background=True,
        )
        scheduler.start()
    except Exception as e:
        _error_message = f"Failed to load authentication profiles/policies: {e}"
        log.error("asgi.init_error", error=_error_message)
        raise

    _components = components
    _scheduler = scheduler
    log.info("asgi.startup_complete")

    yield  # ← App is running here; Uvicorn handles requests

    log.info("asgi.shutdown", reason="SIGTERM or server stop")
    try:
        scheduler.shutdown(wait=True)
        log.info("asgi.scheduler_shutdown_complete")
    except Exception as e:
        log.warning("asgi.scheduler_shutdown_error", error=str(e))
    _components = None
    _scheduler = None
    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="authn-profiles",
    description="Authentication profile PDP — VO-CA-AP trust policies as a web service",
    version=__version__,
    lifespan=lifespan,
)


class DecisionRequest(BaseModel):
    ca_subject: str = Field(min_length=1, description="CA subject DN (RFC 2253 or OpenSSL form)")
    vo: str | None = Field(default=None, description="Asserted VO name, if any")


def _scheduler_running() -> bool:
    return _scheduler is not None and _scheduler.running


@app.get("/health")
async def health() -> JSONResponse:
    """
    Kubernetes liveness probe.

    Returns 200 while the refresh scheduler runs, 503 after a startup failure
    or if the scheduler stopped.
    """
    if _error_message:
        log.warning("health.check_failed", error=_error_message)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )

    if not _scheduler_running():
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "scheduler not running"},
        )

    return JSONResponse(
        status_code=200,
        content={"status": "healthy", "scheduler_running": True},
    )


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Kubernetes readiness probe.

    Ready means profiles and policies are loaded: decisions can be served.
    """
    if _components is None:
        return JSONResponse(
            status_code=503,
            content={"status": "starting", "error": _error_message},
        )

    policy_set = _components.policies.get()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ready",
            "profiles": len(_components.profiles.profiles),
            "vo_policies": len(policy_set.vo_profile_policies),
        },
    )


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata, for debugging and monitoring."""
    profiles = (
        [p.alias for p in _components.profiles.profiles] if _components is not None else []
    )
    return {
        "name": "authn-profiles",
        "version": __version__,
        "scheduler_running": _scheduler_running(),
        "profiles": profiles,
        "has_error": _error_message is not None,
    }


@app.post("/reload")
async def reload() -> JSONResponse:
    """
    Administrative reload of the trust-anchor profiles and the VO-CA-AP policies.

    Returns 200 on success, 500 with the failure (previous policies stay in
    effect) or 503 before startup completed.
    """
    if _components is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "Policies not loaded"},
        )

    log.info("reload.manual_start", source="REST")
    result = await asyncio.to_thread(_components.refresh)

    if result.is_success():
        policy_set = result.value()
        log.info("reload.completed")
        return JSONResponse(
            status_code=200,
            content={
                "status": "success",
                "vo_policies": len(policy_set.vo_profile_policies),
            },
        )

    failure = result.error()
    log.error("reload.failed", failure=str(failure))
    return JSONResponse(
        status_code=500,
        content={
            "status": "failed",
            "error_code": failure.code.value,
            "message": failure.message,
        },
    )


@app.post("/decision")
def decision(body: DecisionRequest) -> JSONResponse:
    """
    Decide whether a certificate issued by `ca_subject` is allowed (for `vo`).

    An unknown CA is 422 "untrusted_ca", never a deny.
    """
    if _components is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "Policies not loaded"},
        )

    pdp = _components.pdp
    try:
        if body.vo is None:
            verdict = pdp.is_ca_allowed(body.ca_subject)
        else:
            verdict = pdp.is_ca_allowed_for_vo(body.ca_subject, body.vo)
    except AuthenticationProfileError as e:
        return JSONResponse(
            status_code=422,
            content={"error": "untrusted_ca", "message": str(e)},
        )

    return JSONResponse(
        status_code=200,
        content={
            "allowed": verdict.allowed,
            "profile": verdict.profile_alias,
            "principal": verdict.principal,
        },
    )


if __name__ == "__main__":
    # For local testing: python -m uvicorn authn_profiles.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "authn_profiles.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
