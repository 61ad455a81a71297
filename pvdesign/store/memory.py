"""In-memory implementations of the store collaborators.

Rows pass through JSON on the way in and out so callers see the same shapes a
remote data store would hand back.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pvdesign.config import DesignerConfig
from pvdesign.errors import PersistenceError, SegmentNotFoundError
from pvdesign.model.modules import Module, ModuleDimensions, resolve_dimensions


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _roundtrip(row: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        return json.loads(json.dumps(dict(row)))
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"row is not serializable: {exc}") from exc


class InMemorySegmentStore:
    def __init__(self) -> None:
        self._rows: Dict[str, Dict[str, Any]] = {}

    def list_by_design(self, design_id: str) -> List[Dict[str, Any]]:
        rows = [r for r in self._rows.values() if r.get("design_id") == design_id]
        rows.sort(key=lambda r: r.get("created_at") or "")
        return [_roundtrip(r) for r in rows]

    def create(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        stored = _roundtrip(row)
        stored["id"] = stored.get("id") or uuid.uuid4().hex
        if stored["id"] in self._rows:
            raise PersistenceError(f"segment {stored['id']} already exists")
        now = _now()
        stored["created_at"] = now
        stored["updated_at"] = now
        self._rows[stored["id"]] = stored
        return _roundtrip(stored)

    def update_partial(self, segment_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        row = self._rows.get(segment_id)
        if row is None:
            raise SegmentNotFoundError(segment_id)
        patch = _roundtrip(fields)
        patch.pop("id", None)
        row.update(patch)
        row["updated_at"] = _now()
        return _roundtrip(row)

    def delete(self, segment_id: str) -> None:
        if self._rows.pop(segment_id, None) is None:
            raise SegmentNotFoundError(segment_id)

    def get(self, segment_id: str) -> Optional[Dict[str, Any]]:
        row = self._rows.get(segment_id)
        return None if row is None else _roundtrip(row)


class InMemoryModuleCatalog:
    def __init__(self, config: Optional[DesignerConfig] = None) -> None:
        self._modules: Dict[str, Module] = {}
        self._details: Dict[str, Dict[str, Any]] = {}
        self._config = config or DesignerConfig()

    def add(self, module: Module, parsed: Optional[Mapping[str, Any]] = None) -> Module:
        self._modules[module.id] = module
        if parsed is not None:
            self._details[module.id] = dict(parsed)
        return module

    def list(self) -> List[Module]:
        return sorted(self._modules.values(), key=lambda m: (m.manufacturer, m.model))

    def get(self, module_id: str) -> Optional[Module]:
        return self._modules.get(module_id)

    def get_parsed_details(self, module_id: str) -> Optional[Dict[str, Any]]:
        details = self._details.get(module_id)
        return None if details is None else dict(details)

    def get_dimensions(self, module_id: str) -> ModuleDimensions:
        return resolve_dimensions(self.get(module_id), self.get_parsed_details(module_id), self._config)

    def delete(self, module_id: str) -> None:
        if self._modules.pop(module_id, None) is None:
            raise PersistenceError(f"module {module_id} not found")
        self._details.pop(module_id, None)
