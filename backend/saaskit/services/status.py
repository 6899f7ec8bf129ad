from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


class ProviderNotConfiguredError(Exception):
    """Raised when a provider is used before its credentials are set."""

    def __init__(self, service: str, missing: list[str]):
        self.service = service
        self.missing = list(missing)
        super().__init__(f"{service} is not configured (missing: {', '.join(self.missing)})")


@dataclass
class ServiceConfigStatus:
    name: str
    configured: bool
    connected: bool | None = None
    required: bool = True
    config_to_review: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["configToReview"] = data.pop("config_to_review")
        return data


def missing_settings(pairs: dict[str, str | None]) -> list[str]:
    return [name for name, value in pairs.items() if not value]


async def check_service(name: str, service: Any) -> ServiceConfigStatus:
    required = bool(getattr(service, "required", True))
    try:
        status = await service.check_configuration()
        if status.configured:
            status = await service.check_connection()
    except Exception as exc:
        logger.exception("status.check_failed service=%s", name)
        return ServiceConfigStatus(name=name, configured=False, connected=False, required=required, error=str(exc))
    status.required = required
    return status


async def collect_service_statuses(providers: Any) -> list[ServiceConfigStatus]:
    statuses = []
    for label, service in (
        ("Database Service", providers.database),
        ("Billing Service", providers.billing),
        ("Storage Service", providers.storage),
        ("Email Service", providers.email),
    ):
        statuses.append(await check_service(label, service))
    return statuses


def build_system_report(statuses: list[ServiceConfigStatus], environment: str) -> dict[str, Any]:
    has_issues = any(not s.configured or not s.connected for s in statuses)
    return {
        "services": [s.to_dict() for s in statuses],
        "systemInfo": {
            "environment": environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "status": "issues_detected" if has_issues else "ok",
    }
