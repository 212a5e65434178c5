"""jwkfetch Models.

Pydantic models for provider configuration and discovery documents, plus
library-wide constants.
"""

from jwkfetch.models.base import JWKFetchBaseModel
from jwkfetch.models.constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_REFRESH_INTERVAL
from jwkfetch.models.entities import DiscoveryDocument, ProviderEntry

__all__ = [
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_REFRESH_INTERVAL",
    "DiscoveryDocument",
    "JWKFetchBaseModel",
    "ProviderEntry",
]
