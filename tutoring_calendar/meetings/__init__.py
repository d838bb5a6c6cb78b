"""External meeting providers for shifts."""
from __future__ import annotations

from .teams import (
    GRAPH_API_BASE,
    MeetingError,
    MeetingInfo,
    MeetingProvider,
    TeamsMeetingClient,
)

__all__ = [
    "GRAPH_API_BASE",
    "MeetingError",
    "MeetingInfo",
    "MeetingProvider",
    "TeamsMeetingClient",
]
