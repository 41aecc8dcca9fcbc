from __future__ import annotations

from collections.abc import Callable

from lando_db.models.domain import ServiceKind

Predicate = Callable[[str, str], bool]


def _mentions(*needles: str) -> Predicate:
    def predicate(name: str, image: str) -> bool:
        return any(n in name or n in image for n in needles)

    return predicate


# Evaluated top to bottom, first match wins.
CLASSIFICATION_RULES: list[tuple[Predicate, ServiceKind]] = [
    (_mentions("mysql", "mariadb"), ServiceKind.MYSQL),
    (_mentions("postgres", "postgis"), ServiceKind.POSTGRES),
    (_mentions("sqlite"), ServiceKind.SQLITE),
    (_mentions("mongo"), ServiceKind.MONGO),
    (_mentions("redis"), ServiceKind.REDIS),
    (_mentions("cassandra"), ServiceKind.CASSANDRA),
]


def classify_service(
    name: str,
    image: str,
    rules: list[tuple[Predicate, ServiceKind]] | None = None,
) -> ServiceKind:
    """Return the kind of the first rule matching the service name or image."""
    lowered_name = name.lower()
    lowered_image = image.lower()
    for predicate, kind in rules if rules is not None else CLASSIFICATION_RULES:
        if predicate(lowered_name, lowered_image):
            return kind
    return ServiceKind.UNKNOWN
