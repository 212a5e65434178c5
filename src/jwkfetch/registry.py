"""Static provider registry.

Callers may know ahead of time where an issuer publishes its keys. Entries
registered here are preferred over live discovery when resolving by issuer.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

from jwkfetch.models.entities import ProviderEntry
from jwkfetch.observability import get_logger

logger = get_logger(__name__)


class ProviderRegistry:
    """Issuer-keyed view over a list of ``ProviderEntry``.

    When several entries name the same issuer, the first one wins.

    Example:
        >>> entry = ProviderEntry(issuer="https://idp", jwks_url="https://idp/keys")
        >>> registry = ProviderRegistry([entry])
        >>> registry.lookup("https://idp").jwks_url
        'https://idp/keys'
    """

    def __init__(self, entries: Iterable[ProviderEntry] = ()) -> None:
        self._entries: list[ProviderEntry] = list(entries)
        self._by_issuer: dict[str, ProviderEntry] = {}
        for entry in self._entries:
            if not entry.issuer:
                continue
            if entry.issuer in self._by_issuer:
                logger.warning("jwkfetch.registry.duplicate_issuer", issuer=entry.issuer)
                continue
            self._by_issuer[entry.issuer] = entry

    def lookup(self, issuer: str) -> Optional[ProviderEntry]:
        """Return the entry configured for ``issuer``, if any."""
        return self._by_issuer.get(issuer)

    def __iter__(self) -> Iterator[ProviderEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
