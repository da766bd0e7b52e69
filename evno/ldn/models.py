# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Wire-facing result models for delivery and the watcher event stream."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Watcher events
# =============================================================================

class EventKind(str, Enum):
    NOTIFICATION = "notification"
    FETCH_ERROR = "fetch-error"
    PARSE_ERROR = "parse-error"
    LIST_ERROR = "list-error"


class EventRecord(BaseModel):
    """JSON-serialisable view of one watcher event."""

    kind: EventKind
    resource: str
    activity_id: Optional[str] = None
    types: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    body: Optional[str] = None


# =============================================================================
# Delivery
# =============================================================================

class SendResult(BaseModel):
    success: bool
    status_code: int
    location: Optional[str] = None
