from __future__ import annotations

import logging
from typing import List, Optional

from pvdesign.errors import PersistenceError
from pvdesign.model.modules import Module
from pvdesign.store.protocols import ModuleCatalog

logger = logging.getLogger(__name__)


class ModuleLibrary:
    """Module list shown to the user; deletes are optimistic and rolled back on failure."""

    def __init__(self, catalog: ModuleCatalog) -> None:
        self.catalog = catalog
        self.modules: List[Module] = []
        self.last_error: Optional[Exception] = None

    def load(self) -> List[Module]:
        self.modules = list(self.catalog.list())
        return list(self.modules)

    def delete(self, module_id: str) -> bool:
        original = list(self.modules)
        self.modules = [m for m in self.modules if m.id != module_id]
        try:
            self.catalog.delete(module_id)
        except PersistenceError as exc:
            self.modules = original
            self.last_error = exc
            logger.warning("module %s could not be deleted, list restored: %s", module_id, exc)
            return False
        return True
