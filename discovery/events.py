"""Events emitted while a scan is running.

A scan's event stream is a sequence of PROGRESS and RESULT events ended by
exactly one terminal event, COMPLETE or ERROR. Each event serializes to a
discriminated record {type, progress?, message?, result?, error?}.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from discovery.models import LinkEntry, PingResult

ProbeResult = Union[PingResult, LinkEntry]


class ScanEventType(Enum):
    """Kinds of scan events."""

    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ScanEvent:
    """A single scan event.

    Attributes:
        event_type: The kind of event.
        progress: Percentage 0-100 (PROGRESS only).
        message: Human readable text.
        result: Probe result payload (RESULT only).
        timestamp: When the event was created.
    """

    event_type: ScanEventType
    progress: Optional[int] = None
    message: str = ""
    result: Optional[ProbeResult] = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def progress_event(cls, percent: int, message: str) -> "ScanEvent":
        return cls(ScanEventType.PROGRESS, progress=max(0, min(100, int(percent))),
                   message=message)

    @classmethod
    def result_event(cls, result: ProbeResult) -> "ScanEvent":
        return cls(ScanEventType.RESULT, result=result)

    @classmethod
    def error_event(cls, message: str) -> "ScanEvent":
        return cls(ScanEventType.ERROR, message=message)

    @classmethod
    def complete_event(cls, message: str = "Scan completed") -> "ScanEvent":
        return cls(ScanEventType.COMPLETE, message=message)

    @property
    def is_terminal(self) -> bool:
        """Whether this event ends a scan's stream."""
        return self.event_type in (ScanEventType.ERROR, ScanEventType.COMPLETE)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.event_type.value}
        if self.progress is not None:
            data["progress"] = self.progress
        if self.message:
            data["message"] = self.message
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.event_type is ScanEventType.ERROR:
            data["error"] = self.message
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_sse(self) -> str:
        """Format as a text/event-stream frame."""
        return f"data: {self.to_json()}\n\n"

    def __str__(self) -> str:
        return f"ScanEvent({self.event_type.name}, {self.to_dict()})"
