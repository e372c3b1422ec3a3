"""Blocked identifiers and the external fraud phone list."""

import re
from collections.abc import Iterable

import structlog

logger = structlog.get_logger()


class Blocklist:
    """Append-only set of blocked user ids and phone numbers.

    Both kinds of identifier share one namespace and are checked
    independently. Adds are idempotent; removal is an administrative action.
    """

    def __init__(self, identifiers: Iterable[str] = ()) -> None:
        self._blocked: set[str] = set(identifiers)

    def add(self, identifier: str) -> bool:
        """Block an identifier. Returns False if it was already blocked."""
        if not identifier or identifier in self._blocked:
            return False
        self._blocked.add(identifier)
        logger.info("blocklist_added", identifier=identifier)
        return True

    def remove(self, identifier: str) -> bool:
        if identifier not in self._blocked:
            return False
        self._blocked.discard(identifier)
        logger.info("blocklist_removed", identifier=identifier)
        return True

    def is_blocked(self, *identifiers: str | None) -> bool:
        return any(i in self._blocked for i in identifiers if i)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._blocked

    def __len__(self) -> int:
        return len(self._blocked)


class ExternalFraudDatabase:
    """Known-fraud phone numbers plus regex patterns of fraudulent ranges."""

    def __init__(
        self,
        patterns: Iterable[str] = (),
        phone_numbers: Iterable[str] = (),
    ) -> None:
        self._patterns = [re.compile(p) for p in patterns]
        self._phones: set[str] = set(phone_numbers)

    def add(self, phone_number: str) -> None:
        self._phones.add(phone_number)

    def remove(self, phone_number: str) -> None:
        self._phones.discard(phone_number)

    async def is_listed(self, phone_number: str) -> bool:
        return phone_number in self._phones

    async def matches_pattern(self, phone_number: str) -> bool:
        return any(p.search(phone_number) for p in self._patterns)

    def __len__(self) -> int:
        return len(self._phones)
