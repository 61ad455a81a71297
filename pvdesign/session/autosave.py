"""Debounced persistence of segment attribute edits.

Edits are merged per segment and written once the segment has been quiet for
the debounce period. Different segments never wait on each other.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from pvdesign.config import DesignerConfig
from pvdesign.errors import PersistenceError
from pvdesign.store.protocols import SegmentStore

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


@dataclass
class _Pending:
    fields: Dict[str, Any] = field(default_factory=dict)
    last_edit: float = 0.0


class DebouncedAutoSaver:
    def __init__(
        self,
        store: SegmentStore,
        config: Optional[DesignerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.config = config or DesignerConfig()
        self.clock = clock
        self.status = SaveStatus.IDLE
        self.last_error: Optional[Exception] = None
        self._pending: Dict[str, _Pending] = {}

    @property
    def delay(self) -> float:
        return self.config.autosave_debounce_s

    def touch(self, segment_id: str, fields: Mapping[str, Any], now: Optional[float] = None) -> None:
        """Queue fields for a segment; each call restarts its quiet period."""
        pending = self._pending.setdefault(segment_id, _Pending())
        pending.fields.update(fields)
        pending.last_edit = self.clock() if now is None else now

    def pending(self, segment_id: str) -> Dict[str, Any]:
        entry = self._pending.get(segment_id)
        return {} if entry is None else dict(entry.fields)

    def discard(self, segment_id: str) -> None:
        self._pending.pop(segment_id, None)

    def flush_due(self, now: Optional[float] = None) -> List[str]:
        """Write every segment whose last edit is older than the debounce period."""
        now = self.clock() if now is None else now
        due = [sid for sid, p in self._pending.items() if now - p.last_edit >= self.delay]
        return self._flush(due)

    def flush_all(self) -> List[str]:
        return self._flush(list(self._pending))

    def _flush(self, segment_ids: List[str]) -> List[str]:
        written = []
        for segment_id in segment_ids:
            entry = self._pending.pop(segment_id, None)
            if entry is None or not entry.fields:
                continue
            self.status = SaveStatus.SAVING
            try:
                self.store.update_partial(segment_id, entry.fields)
            except PersistenceError as exc:
                self.status = SaveStatus.ERROR
                self.last_error = exc
                logger.error("autosave of segment %s failed: %s", segment_id, exc)
                continue
            written.append(segment_id)
            self.status = SaveStatus.SAVED
            logger.debug("autosaved %s: %s", segment_id, sorted(entry.fields))
        return written
