from __future__ import annotations

import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping

from pvdesign.errors import PersistenceError, SegmentNotFoundError


class JsonFileSegmentStore:
    """Segment rows kept in one JSON file (``segments.json``) under a root directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / "segments.json"

    def list_by_design(self, design_id: str) -> List[Dict[str, Any]]:
        rows = [r for r in self._load().values() if r.get("design_id") == design_id]
        rows.sort(key=lambda r: r.get("created_at") or "")
        return rows

    def create(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        data = self._load()
        stored = dict(row)
        stored["id"] = stored.get("id") or uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        stored["created_at"] = now
        stored["updated_at"] = now
        data[stored["id"]] = stored
        self._save(data)
        return dict(stored)

    def update_partial(self, segment_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        data = self._load()
        if segment_id not in data:
            raise SegmentNotFoundError(segment_id)
        patch = dict(fields)
        patch.pop("id", None)
        data[segment_id].update(patch)
        data[segment_id]["updated_at"] = datetime.now(timezone.utc).isoformat()
        self._save(data)
        return dict(data[segment_id])

    def delete(self, segment_id: str) -> None:
        data = self._load()
        if data.pop(segment_id, None) is None:
            raise SegmentNotFoundError(segment_id)
        self._save(data)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Unable to read {self._path}") from exc

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        try:
            fd, tmp = tempfile.mkstemp(dir=self._root, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Unable to write {self._path}") from exc
