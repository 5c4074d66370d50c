"""
Health check utilities for admitrack.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import psutil

from .catalog import BASE_DOCUMENTS, DOCUMENT_COLLECTION, PHASE_CATALOGS

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """Individual health check definition."""
    name: str
    check_function: Callable
    timeout_seconds: float = 5.0
    critical: bool = True
    description: str = ""


@dataclass
class HealthResult:
    """Result of a health check."""
    name: str
    status: HealthStatus
    message: str
    duration_ms: float
    timestamp: datetime
    critical: bool


class HealthChecker:
    """
    Runs registered checks and folds them into one status.

    A failing critical check makes the whole service unhealthy; a failing
    non-critical check only degrades it.
    """

    def __init__(self, max_history_per_check: int = 100):
        self.checks: Dict[str, HealthCheck] = {}
        self.last_results: Dict[str, HealthResult] = {}
        self.check_history: Dict[str, List[HealthResult]] = {}
        self.max_history_per_check = max_history_per_check

    def register_check(
        self,
        name: str,
        check_function: Callable,
        timeout_seconds: float = 5.0,
        critical: bool = True,
        description: str = ""
    ):
        """
        Register a health check.

        Args:
            name: Unique name for the health check
            check_function: Sync or async callable returning True when healthy
            timeout_seconds: Timeout for the check
            critical: Whether this check is critical for overall health
            description: Human-readable description of the check
        """
        self.checks[name] = HealthCheck(
            name=name,
            check_function=check_function,
            timeout_seconds=timeout_seconds,
            critical=critical,
            description=description
        )
        self.check_history.setdefault(name, [])

        logger.info(f"Registered health check '{name}' (critical: {critical})")

    async def run_check(self, name: str) -> HealthResult:
        """Run a single registered check."""
        if name not in self.checks:
            return HealthResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"Health check '{name}' not found",
                duration_ms=0,
                timestamp=datetime.now(),
                critical=False
            )

        check = self.checks[name]
        start_time = time.time()

        try:
            if asyncio.iscoroutinefunction(check.check_function):
                is_healthy = await asyncio.wait_for(
                    check.check_function(),
                    timeout=check.timeout_seconds
                )
            else:
                is_healthy = await asyncio.wait_for(
                    asyncio.to_thread(check.check_function),
                    timeout=check.timeout_seconds
                )
            status = HealthStatus.HEALTHY if is_healthy else HealthStatus.UNHEALTHY
            message = "Check passed" if is_healthy else "Check failed"

        except asyncio.TimeoutError:
            status = HealthStatus.UNHEALTHY
            message = f"Check timed out after {check.timeout_seconds}s"

        except Exception as e:
            logger.warning(f"Health check '{name}' raised: {str(e)}")
            status = HealthStatus.UNHEALTHY
            message = f"Check failed with error: {str(e)}"

        result = HealthResult(
            name=name,
            status=status,
            message=message,
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=datetime.now(),
            critical=check.critical
        )

        self.last_results[name] = result
        history = self.check_history[name]
        history.append(result)
        if len(history) > self.max_history_per_check:
            del history[:-self.max_history_per_check]

        return result

    async def run_all_checks(self) -> Dict[str, HealthResult]:
        """Run all registered checks concurrently."""
        names = list(self.checks.keys())
        results = await asyncio.gather(*(self.run_check(name) for name in names))
        return dict(zip(names, results))

    async def get_overall_health(self) -> Dict[str, Any]:
        """Overall health summary with per-check details."""
        check_results = await self.run_all_checks()

        if not check_results:
            return {
                "status": HealthStatus.UNKNOWN.value,
                "message": "No health checks configured",
                "timestamp": datetime.now().isoformat(),
                "checks": {}
            }

        critical_unhealthy = [
            r for r in check_results.values()
            if r.critical and r.status == HealthStatus.UNHEALTHY
        ]
        non_critical_unhealthy = [
            r for r in check_results.values()
            if not r.critical and r.status == HealthStatus.UNHEALTHY
        ]

        if critical_unhealthy:
            overall_status = HealthStatus.UNHEALTHY
            message = f"{len(critical_unhealthy)} critical check(s) unhealthy"
        elif non_critical_unhealthy:
            overall_status = HealthStatus.DEGRADED
            message = f"{len(non_critical_unhealthy)} non-critical check(s) unhealthy"
        else:
            overall_status = HealthStatus.HEALTHY
            message = "All checks healthy"

        total_checks = len(check_results)
        healthy_checks = len([r for r in check_results.values() if r.status == HealthStatus.HEALTHY])

        return {
            "status": overall_status.value,
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "statistics": {
                "total_checks": total_checks,
                "healthy_checks": healthy_checks,
                "unhealthy_checks": total_checks - healthy_checks,
                "success_rate": healthy_checks / total_checks
            },
            "checks": {
                name: {
                    "status": result.status.value,
                    "message": result.message,
                    "duration_ms": result.duration_ms,
                    "critical": result.critical,
                    "timestamp": result.timestamp.isoformat()
                }
                for name, result in check_results.items()
            }
        }

    def get_check_history(self, name: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent results of one check, oldest first."""
        return [
            {
                "status": result.status.value,
                "message": result.message,
                "duration_ms": result.duration_ms,
                "timestamp": result.timestamp.isoformat(),
                "critical": result.critical
            }
            for result in self.check_history.get(name, [])[-limit:]
        ]


def catalog_health_check() -> bool:
    """Every catalog starts with Document Collection and has unique phase keys."""
    for country, phases in PHASE_CATALOGS.items():
        if not phases or phases[0].key != DOCUMENT_COLLECTION:
            logger.error(f"Catalog for {country} does not start with {DOCUMENT_COLLECTION}")
            return False
        if tuple(phases[0].required_docs) != BASE_DOCUMENTS:
            logger.error(f"Catalog for {country} has unexpected Document Collection requirements")
            return False
        keys = [phase.key for phase in phases]
        if len(keys) != len(set(keys)):
            logger.error(f"Catalog for {country} has duplicate phase keys")
            return False
    return True


def memory_health_check(threshold_percent: float = 90.0) -> bool:
    """Unhealthy when system memory usage is above the threshold."""
    return psutil.virtual_memory().percent < threshold_percent


def build_health_checker(repository_check: Optional[Callable] = None) -> HealthChecker:
    """Health checker with the standard checks registered."""
    checker = HealthChecker()
    checker.register_check(
        "catalog",
        catalog_health_check,
        critical=True,
        description="Phase catalogs are well formed"
    )
    if repository_check is not None:
        checker.register_check(
            "repository",
            repository_check,
            critical=True,
            description="Student repository is reachable"
        )
    checker.register_check(
        "memory",
        memory_health_check,
        critical=False,
        description="System memory usage below 90%"
    )
    return checker
