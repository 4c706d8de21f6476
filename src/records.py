"""
src/records.py
===============
Call Records — CallBrain

Responsibility:
    - Track each uploaded call (processing -> completed | failed)
    - Keep records in memory for the life of the process
    - Derive the dashboard summary (totals and sentiment counts)

Records are never persisted; a restart starts from an empty store.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from src.schemas.analysis import CallAnalysis, CallSentiment

logger = logging.getLogger("callbrain.records")


class CallStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CallRecord:
    id: str
    file_name: str
    timestamp: int  # epoch milliseconds
    status: CallStatus = CallStatus.PROCESSING
    duration: str | None = None
    analysis: CallAnalysis | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "duration": self.duration,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "error": self.error,
        }


def format_duration(seconds: float | None) -> str | None:
    """Format seconds as ``M:SS``."""
    if seconds is None:
        return None
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


class CallRecordStore:
    """Thread-safe in-memory record store."""

    def __init__(self) -> None:
        self._records: dict[str, CallRecord] = {}
        self._lock = threading.Lock()

    def create(self, file_name: str) -> CallRecord:
        record = CallRecord(
            id=uuid.uuid4().hex,
            file_name=file_name,
            timestamp=int(time.time() * 1000),
        )
        with self._lock:
            self._records[record.id] = record
        logger.info("Call record %s created for %s", record.id, file_name)
        return record

    def complete(
        self,
        record_id: str,
        analysis: CallAnalysis,
        duration_seconds: float | None = None,
    ) -> CallRecord:
        return self._update(
            record_id,
            status=CallStatus.COMPLETED,
            analysis=analysis,
            duration=format_duration(duration_seconds),
        )

    def fail(self, record_id: str, error: str) -> CallRecord:
        return self._update(record_id, status=CallStatus.FAILED, error=error)

    def get(self, record_id: str) -> CallRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def list_records(self) -> list[CallRecord]:
        """All records, newest first."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def dashboard_summary(self) -> dict[str, Any]:
        """Totals over completed calls; a missing sentiment counts as Neutral."""
        completed = [
            r for r in self.list_records()
            if r.status is CallStatus.COMPLETED and r.analysis is not None
        ]

        sentiment_counts = {member.value: 0 for member in CallSentiment}
        total_action_items = 0
        for record in completed:
            sentiment = record.analysis.sentiment or CallSentiment.NEUTRAL.value
            if isinstance(sentiment, str) and sentiment in sentiment_counts:
                sentiment_counts[sentiment] += 1
            items = record.analysis.action_items
            total_action_items += len(items) if isinstance(items, list) else 0

        return {
            "totalCalls": len(completed),
            "totalActionItems": total_action_items,
            "sentimentCounts": sentiment_counts,
        }

    def _update(self, record_id: str, **changes: Any) -> CallRecord:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise KeyError(record_id)
            updated = replace(record, **changes)
            self._records[record_id] = updated
        logger.info("Call record %s -> %s", record_id, updated.status.value)
        return updated
