"""Constants for jwkfetch.

This module defines library-wide defaults used across the codebase.
"""

DEFAULT_SCHEME = "https"
"""Scheme used when an issuer string carries none (e.g. ``accounts.google.com``)."""

DEFAULT_HTTP_TIMEOUT = 10.0  # seconds, per HTTP call

DEFAULT_REFRESH_INTERVAL = 24 * 60 * 60  # 24 hours
"""Period of the bulk cache refresh armed by init()."""

# Refresh backoff (per key, within one refresh pass)
DEFAULT_REFRESH_MAX_RETRIES = 2
DEFAULT_REFRESH_BASE_DELAY = 1.0
DEFAULT_REFRESH_MAX_DELAY = 30.0

# Cache tier names, used in logs and metric labels
TIER_JWKS_URL = "jwks_url"
TIER_DISCOVERY_URL = "discovery_url"
TIER_ISSUER = "issuer"
