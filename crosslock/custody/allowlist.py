"""
crosslock/custody/allowlist.py

Authority-managed set of resolvers permitted to run public operations.
"""

import logging
from typing import Set

from crosslock.core.exceptions import InvalidAccount

logger = logging.getLogger(__name__)


class AllowList:

    def __init__(self, authority: str) -> None:
        self.authority = authority
        self._resolvers: Set[str] = set()

    def register(self, caller: str, resolver: str) -> None:
        self._require_authority(caller)
        self._resolvers.add(resolver)
        logger.info("resolver %s registered", resolver)

    def remove(self, caller: str, resolver: str) -> None:
        self._require_authority(caller)
        self._resolvers.discard(resolver)
        logger.info("resolver %s removed", resolver)

    def is_allowed(self, resolver: str) -> bool:
        return resolver in self._resolvers

    def require(self, resolver: str) -> None:
        """Raise InvalidAccount unless `resolver` is on the list."""
        if resolver not in self._resolvers:
            raise InvalidAccount(
                "Resolver is not on the allow-list", {"resolver": resolver}
            )

    def _require_authority(self, caller: str) -> None:
        if caller != self.authority:
            raise InvalidAccount(
                "Only the allow-list authority may change the list",
                {"caller": caller},
            )

    def __contains__(self, resolver: str) -> bool:
        return self.is_allowed(resolver)

    def __len__(self) -> int:
        return len(self._resolvers)
