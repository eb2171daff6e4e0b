"""
Health check utilities for the Daily Digest services.
Provides dependency probes and the health/live/ready endpoints.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter
from sqlalchemy import text

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.utils.redis_client import get_redis_client


class HealthStatus(Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _elapsed_ms(start: datetime) -> float:
    return (datetime.now() - start).total_seconds() * 1000


class HealthChecker:
    """Runs the registered dependency probes for one service."""

    def __init__(self, service_name: str, critical: Sequence[str] = ("database", "redis")):
        self.service_name = service_name
        self.critical = tuple(critical)
        self.logger = get_logger(f"shared.health.{service_name}")
        self.checks: List[Callable[[], HealthCheck]] = []
        self.settings = get_settings()

    def add_check(self, check_func: Callable[[], HealthCheck]):
        """Add a health check function."""
        self.checks.append(check_func)

    def _probe(self, name: str, label: str, probe: Callable[[], Any]) -> HealthCheck:
        start_time = datetime.now()
        try:
            probe()
            return HealthCheck(
                name=name,
                status=HealthStatus.HEALTHY,
                message=f"{label} connection successful",
                response_time_ms=_elapsed_ms(start_time),
            )
        except Exception as e:
            self.logger.warning(f"{label} health check failed: {e}")
            return HealthCheck(
                name=name,
                status=HealthStatus.UNHEALTHY,
                message=f"{label} connection failed: {str(e)}",
                response_time_ms=_elapsed_ms(start_time),
            )

    def check_database(self) -> HealthCheck:
        """Check database connectivity."""

        def probe():
            from shared.database.session import SessionLocal

            with SessionLocal() as session:
                session.execute(text("SELECT 1"))

        return self._probe("database", "Database", probe)

    def check_redis(self) -> HealthCheck:
        """Check Redis connectivity."""

        def probe():
            if not get_redis_client(self.service_name).ping():
                raise ConnectionError("ping returned false")

        return self._probe("redis", "Redis", probe)

    def check_ai(self) -> HealthCheck:
        """Check that the configured text-generation provider answers."""
        ai = self.settings.ai

        def probe():
            import httpx

            if ai.provider == "gemini":
                if not ai.gemini_api_key:
                    raise RuntimeError("GEMINI_API_KEY is not set")
                response = httpx.get(
                    "https://generativelanguage.googleapis.com/v1beta/models",
                    params={"key": ai.gemini_api_key},
                    timeout=5.0,
                )
                response.raise_for_status()
                return

            import openai

            if not ai.api_key:
                raise RuntimeError("AI_API_KEY is not set")
            openai.OpenAI(api_key=ai.api_key, timeout=5.0, max_retries=0).models.list()

        return self._probe("ai", "AI provider", probe)

    def run_all_checks(self) -> Dict[str, Any]:
        """Run all registered health checks."""
        results = []
        overall_status = HealthStatus.HEALTHY

        for check_func in self.checks:
            result = check_func()
            results.append(result)
            if result.status == HealthStatus.UNHEALTHY:
                overall_status = HealthStatus.UNHEALTHY
            elif result.status == HealthStatus.DEGRADED and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        return {
            "service": self.service_name,
            "status": overall_status.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": [
                {
                    "name": check.name,
                    "status": check.status.value,
                    "message": check.message,
                    "response_time_ms": check.response_time_ms,
                    "timestamp": check.timestamp.isoformat(),
                }
                for check in results
            ],
        }

    def readiness(self) -> Dict[str, Any]:
        """Ready only when every critical dependency is healthy."""
        health_data = self.run_all_checks()
        critical_checks = [
            check for check in health_data["checks"] if check["name"] in self.critical
        ]
        all_critical_healthy = all(check["status"] == "healthy" for check in critical_checks)

        return {
            "status": "ready" if all_critical_healthy else "not_ready",
            "service": self.service_name,
            "critical_dependencies": {
                check["name"]: check["status"] for check in critical_checks
            },
        }


def create_health_checker(service_name: str, critical: Sequence[str] = ("database", "redis")) -> HealthChecker:
    """Create a health checker for a service with common checks."""
    checker = HealthChecker(service_name, critical)
    checker.add_check(checker.check_database)
    checker.add_check(checker.check_redis)
    return checker


def create_collector_health_checker() -> HealthChecker:
    """Create health checker for the collector service."""
    return create_health_checker("collector", critical=("database",))


def create_composer_health_checker() -> HealthChecker:
    """Create health checker for the composer service."""
    return create_health_checker("composer")


def create_analyzer_health_checker() -> HealthChecker:
    """Create health checker for the analyzer service."""
    checker = create_health_checker("analyzer", critical=("database", "ai"))
    checker.add_check(checker.check_ai)
    return checker


def health_router(checker: HealthChecker, prefix: str) -> APIRouter:
    """Mount ``{prefix}/health``, ``/health/live`` and ``/health/ready``."""
    router = APIRouter(prefix=prefix, tags=["health"])

    @router.get("/health")
    def health():
        """Comprehensive health check endpoint."""
        return checker.run_all_checks()

    @router.get("/health/live")
    def liveness_check():
        """Liveness check endpoint."""
        return {"status": "alive", "service": checker.service_name}

    @router.get("/health/ready")
    def readiness_check():
        """Readiness check endpoint."""
        return checker.readiness()

    return router
