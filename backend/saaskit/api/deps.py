from __future__ import annotations

from typing import Any

from fastapi import Request

from saaskit.core.settings import Settings
from saaskit.services.providers import Providers


class InvalidBodyError(ValueError):
    pass


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_providers(request: Request) -> Providers:
    return request.app.state.providers


async def read_json(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidBodyError("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise InvalidBodyError("Invalid JSON body")
    return body


def parse_positive_int(raw: str | None, default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value > 0 else default
