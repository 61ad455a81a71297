from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from pvdesign.model.modules import Module, ModuleDimensions


@runtime_checkable
class SegmentStore(Protocol):
    """Persistence for the field segments of a design (rows keyed by id)."""

    def list_by_design(self, design_id: str) -> List[Dict[str, Any]]:
        ...

    def create(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def update_partial(self, segment_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, segment_id: str) -> None:
        ...


@runtime_checkable
class ModuleCatalog(Protocol):
    """Module library: entries, parsed PAN details and physical sizes."""

    def list(self) -> List[Module]:
        ...

    def get(self, module_id: str) -> Optional[Module]:
        ...

    def get_parsed_details(self, module_id: str) -> Optional[Dict[str, Any]]:
        ...

    def get_dimensions(self, module_id: str) -> ModuleDimensions:
        ...

    def delete(self, module_id: str) -> None:
        ...
