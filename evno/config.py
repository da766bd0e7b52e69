# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""evno configuration.

Defaults may be overridden via environment variables.
"""

import os

# =============================================================================
# POLLING
# =============================================================================

POLL_INTERVAL_SECONDS: float = float(os.getenv("EVNO_POLL_INTERVAL", "1.0"))

# Dedup strategy: "activity_id" (one emission per activity) or
# "resource_url" (one emission per inbox resource).
DEDUP_STRATEGY: str = os.getenv("EVNO_DEDUP_STRATEGY", "activity_id")

# Empty means an in-memory cache that resets on restart.
CACHE_PATH: str = os.getenv("EVNO_CACHE_PATH", "")

INBOX_PATH: str = os.getenv("EVNO_INBOX_PATH", "inbox/")

# =============================================================================
# NETWORK
# =============================================================================

HTTP_TIMEOUT_SECONDS: float = float(os.getenv("EVNO_HTTP_TIMEOUT", "10.0"))
AUTH_TOKEN: str = os.getenv("EVNO_AUTH_TOKEN", "")
WEBID: str = os.getenv("EVNO_WEBID", "")

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("EVNO_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("EVNO_LOG_FORMAT", "json")
