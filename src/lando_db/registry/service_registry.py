from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import SecretStr

from lando_db.errors import DiscoveryError
from lando_db.models.domain import (
    ConnectionInfo,
    ServiceCredentials,
    ServiceDescriptor,
)
from lando_db.registry.classify import classify_service

logger = structlog.get_logger()


def _connection(raw: Any) -> ConnectionInfo | None:
    if not isinstance(raw, Mapping):
        return None
    return ConnectionInfo(host=str(raw.get("host") or ""), port=str(raw.get("port") or ""))


def _credentials(raw: Any) -> ServiceCredentials | None:
    if not isinstance(raw, Mapping):
        return None
    password = raw.get("password")
    return ServiceCredentials(
        user=raw.get("user"),
        password=SecretStr(str(password)) if password is not None else None,
        database=raw.get("database"),
    )


def _decode(raw: str | bytes | list[Any]) -> list[Any]:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DiscoveryError(f"Service list is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise DiscoveryError(
            f"Service list must be a JSON array, got {type(raw).__name__}"
        )
    return raw


def build_descriptor(entry: Any) -> ServiceDescriptor:
    """Turn one `lando info` entry into a classified ServiceDescriptor."""
    if not isinstance(entry, Mapping):
        raise DiscoveryError(f"Service entry must be an object, got {type(entry).__name__}")
    name = entry.get("service") or entry.get("name")
    if not name or not isinstance(name, str):
        raise DiscoveryError("Service entry has no name")
    image = str(entry.get("type") or entry.get("image") or "")
    urls = entry.get("urls") or []
    return ServiceDescriptor(
        name=name,
        kind=classify_service(name, image),
        image=image,
        version=str(entry.get("version") or ""),
        urls=tuple(str(u) for u in urls) if isinstance(urls, list) else (),
        connection=_connection(entry.get("internal_connection")),
        external_connection=_connection(entry.get("external_connection")),
        credentials=_credentials(entry.get("creds")),
    )


class ServiceRegistry:
    """Holds the services of the current project, keyed by name."""

    def __init__(self) -> None:
        self._services: dict[str, ServiceDescriptor] = {}
        self._lock = asyncio.Lock()

    async def refresh(self, raw: str | bytes | list[Any]) -> list[ServiceDescriptor]:
        entries = _decode(raw)
        # Validate every entry before swapping.
        discovered: dict[str, ServiceDescriptor] = {}
        for entry in entries:
            descriptor = build_descriptor(entry)
            discovered[descriptor.name] = descriptor

        async with self._lock:
            self._services = discovered

        logger.info(
            "services_refreshed",
            service_count=len(discovered),
            database_count=sum(1 for d in discovered.values() if d.is_database),
        )
        return list(discovered.values())

    def services(self) -> list[ServiceDescriptor]:
        return list(self._services.values())

    def database_services(self) -> list[ServiceDescriptor]:
        return [s for s in self._services.values() if s.is_database]

    def get(self, name: str) -> ServiceDescriptor:
        service = self._services.get(name)
        if service is None:
            raise KeyError(f"Service {name} not found")
        return service

    def __len__(self) -> int:
        return len(self._services)
