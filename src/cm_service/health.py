"""Health checks, the aggregated `/__health` report and good-to-go status."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

HEALTH_SCHEMA_VERSION = 1

Checker = Callable[[], Awaitable[str]]


@dataclass(slots=True, frozen=True)
class ServiceIdentity:
    """Identifies the deployable unit in health reports."""

    system_code: str
    name: str
    description: str = ""


@dataclass(slots=True, frozen=True)
class Check:
    """A named health check.

    The checker returns a human readable output when the dependency is healthy
    and raises when it is not; the exception text becomes the check output.
    """

    id: str
    name: str
    checker: Checker
    severity: int = 1
    business_impact: str = ""
    technical_summary: str = ""
    panic_guide: str = ""


@dataclass(slots=True, frozen=True)
class CheckResult:
    """Outcome of running a single check."""

    id: str
    name: str
    ok: bool
    severity: int
    business_impact: str
    technical_summary: str
    panic_guide: str
    check_output: str
    last_updated: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "id": self.id,
            "name": self.name,
            "ok": self.ok,
            "severity": self.severity,
            "businessImpact": self.business_impact,
            "technicalSummary": self.technical_summary,
            "panicGuide": self.panic_guide,
            "checkOutput": self.check_output,
            "lastUpdated": _format_timestamp(self.last_updated),
        }


@dataclass(slots=True, frozen=True)
class HealthReport:
    """Aggregated health across every registered check."""

    identity: ServiceIdentity
    checks: tuple[CheckResult, ...]

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.checks)

    @property
    def severity(self) -> int | None:
        """Most urgent (lowest) severity among failing checks."""
        failing = [result.severity for result in self.checks if not result.ok]
        return min(failing) if failing else None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable payload suitable for `/__health` endpoints."""
        payload: dict[str, Any] = {
            "schemaVersion": HEALTH_SCHEMA_VERSION,
            "systemCode": self.identity.system_code,
            "name": self.identity.name,
            "description": self.identity.description,
            "checks": [result.to_dict() for result in self.checks],
            "ok": self.ok,
        }
        severity = self.severity
        if severity is not None:
            payload["severity"] = severity
        return payload


@dataclass(slots=True, frozen=True)
class GoodToGoStatus:
    good_to_go: bool
    message: str = ""


@dataclass(slots=True)
class HealthService:
    """Holds the service's health checks and evaluates them on demand.

    Checks run sequentially in registration order on every call; nothing is
    cached and nothing is retried.
    """

    identity: ServiceIdentity
    check_timeout_seconds: float | None = 10.0
    _checks: list[Check] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if self.check_timeout_seconds is not None and self.check_timeout_seconds <= 0:
            raise ValueError("check_timeout_seconds must be > 0")

    @property
    def checks(self) -> tuple[Check, ...]:
        return tuple(self._checks)

    def register(self, check: Check) -> None:
        """Register a check; ids must be unique."""
        if any(existing.id == check.id for existing in self._checks):
            raise ValueError(f"health check already registered: {check.id}")
        self._checks.append(check)

    def register_all(self, checks: Iterable[Check]) -> None:
        for check in checks:
            self.register(check)

    async def health(self) -> HealthReport:
        """Run every check and build a fresh report. Never raises."""
        results = [await self._run_check(check) for check in self._checks]
        return HealthReport(identity=self.identity, checks=tuple(results))

    async def gtg(self) -> GoodToGoStatus:
        """Report good-to-go, stopping at the first failing check."""
        for check in self._checks:
            result = await self._run_check(check)
            if not result.ok:
                return GoodToGoStatus(good_to_go=False, message=result.check_output)
        return GoodToGoStatus(good_to_go=True)

    async def good_to_go(self) -> bool:
        """True iff every registered check currently passes."""
        return (await self.gtg()).good_to_go

    async def _run_check(self, check: Check) -> CheckResult:
        deadline = asyncio.timeout(self.check_timeout_seconds)
        try:
            async with deadline:
                output = await check.checker()
            ok = True
            check_output = "" if output is None else str(output)
        except TimeoutError as exc:
            ok = False
            if deadline.expired():
                check_output = f"timed out after {self.check_timeout_seconds:g}s"
            else:
                check_output = str(exc) or type(exc).__name__
        except Exception as exc:
            ok = False
            check_output = str(exc) or type(exc).__name__

        return CheckResult(
            id=check.id,
            name=check.name,
            ok=ok,
            severity=check.severity,
            business_impact=check.business_impact,
            technical_summary=check.technical_summary,
            panic_guide=check.panic_guide,
            check_output=check_output,
            last_updated=datetime.now(tz=UTC),
        )


def sample_check(system_code: str) -> Check:
    """Placeholder check registered until the service has real dependencies."""

    async def _sample_checker() -> str:
        return "Sample is healthy"

    return Check(
        id="sample-check",
        name="Sample healthcheck",
        checker=_sample_checker,
        severity=1,
        business_impact="Sample healthcheck has no impact",
        technical_summary="Sample healthcheck has no technical details",
        panic_guide=f"https://runbooks.in.ft.com/{system_code}",
    )


def new_health_service(
    identity: ServiceIdentity,
    *,
    checks: Iterable[Check] | None = None,
    check_timeout_seconds: float | None = 10.0,
) -> HealthService:
    """Build the service's health aggregator with its default checks."""
    service = HealthService(identity=identity, check_timeout_seconds=check_timeout_seconds)
    service.register_all([sample_check(identity.system_code)] if checks is None else checks)
    return service


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
