"""
Mission event log.

The durable, user-facing record of what a mission did. Events are only ever
appended; their id gives the order. Each event is mirrored to the process
log as well.
"""

import logging
from typing import List, Optional

from .database import MissionEvent
from .logger import get_logger
from .storage import LeadStore

logger = get_logger()

EVENT_KINDS = ("info", "success", "warning", "error", "tool")

_LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
}


class MissionEventLog:
    """Append-only event stream for one mission."""

    def __init__(self, store: LeadStore, mission_id: str):
        self.store = store
        self.mission_id = mission_id

    def append(self, kind: str, message: str, tool_name: Optional[str] = None) -> MissionEvent:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {kind}")
        event = self.store.append_mission_event(self.mission_id, kind, message, tool_name)
        logger.log(_LOG_LEVELS.get(kind, logging.INFO), message, mission_id=self.mission_id, kind=kind)
        return event

    def info(self, message: str) -> MissionEvent:
        return self.append("info", message)

    def success(self, message: str) -> MissionEvent:
        return self.append("success", message)

    def warning(self, message: str) -> MissionEvent:
        return self.append("warning", message)

    def error(self, message: str) -> MissionEvent:
        return self.append("error", message)

    def tool(self, message: str, tool_name: str) -> MissionEvent:
        return self.append("tool", message, tool_name=tool_name)

    def recent(self, limit: int = 50) -> List[MissionEvent]:
        """Newest first."""
        return self.store.get_mission_events(self.mission_id, limit)


def event_message(event: MissionEvent) -> str:
    payload = event.payload or {}
    return payload.get("message", "")
