"""
Bounded history of connection failures, keyed by stream URL.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

FAILURE_HISTORY_LIMIT = 200

WallClock = Callable[[], float]


@dataclass(frozen=True)
class FailureRecord:
    channel: str
    code: str
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        view = dict(self.details)
        view["code"] = self.code
        view["timestamp"] = self.timestamp
        view["channel"] = self.channel
        return view


class FailureHistory:
    """
    Newest-first failure log shared by every session of a controller.
    """

    def __init__(self, *, limit: int = FAILURE_HISTORY_LIMIT, clock: Optional[WallClock] = None) -> None:
        self._lock = threading.RLock()
        self._records: Deque[FailureRecord] = deque(maxlen=max(1, int(limit)))
        self._clock: WallClock = clock if clock is not None else time.time

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record(self, channel: Optional[str], code: Optional[str] = None, **details: Any) -> FailureRecord:
        normalized_channel = (channel or "").strip() or "unknown"
        normalized_code = (code or "").strip() or "error"
        record = FailureRecord(
            channel=normalized_channel,
            code=normalized_code,
            timestamp=self._clock(),
            details={key: value for key, value in details.items() if value is not None},
        )
        with self._lock:
            self._records.appendleft(record)
        return record

    def recent(self, window_seconds: float) -> List[Dict[str, Any]]:
        cutoff = self._clock() - max(0.0, float(window_seconds))
        results: List[Dict[str, Any]] = []
        with self._lock:
            for record in self._records:
                if record.timestamp < cutoff:
                    break
                results.append(record.to_dict())
        return results

    def describe(self, channel: Optional[str], window_seconds: float) -> Optional[Dict[str, Any]]:
        if channel is None:
            return None
        normalized = channel.strip().lower() or "unknown"
        cutoff = self._clock() - max(0.0, float(window_seconds))
        with self._lock:
            for record in self._records:
                if record.timestamp < cutoff:
                    break
                if record.channel.lower() == normalized:
                    return record.to_dict()
        return None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


__all__ = ["FAILURE_HISTORY_LIMIT", "FailureHistory", "FailureRecord"]
