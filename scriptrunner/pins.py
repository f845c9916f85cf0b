"""Pinned scripts, persisted by identity so pins survive catalog reloads."""

from __future__ import annotations

import logging

from scriptrunner.catalog import Script
from scriptrunner.config import ConfigScope, ConfigStore


logger = logging.getLogger(__name__)

PINS_KEY = "pinnedScripts"


class PinStore:
    def __init__(self, store: ConfigStore) -> None:
        self._store = store

    def pinned_ids(self) -> list[str]:
        return list(self._store.get_global(PINS_KEY, []))

    def is_pinned(self, script: Script) -> bool:
        return script.pin_id in self.pinned_ids()

    def toggle(self, script: Script) -> bool:
        """Pin or unpin a script. Returns True if the script is now pinned."""
        pin_id = script.pin_id
        pinned = False

        def apply(current: list | None) -> list:
            nonlocal pinned
            ids = list(current or [])
            if pin_id in ids:
                ids.remove(pin_id)
            else:
                ids.append(pin_id)
                pinned = True
            return ids

        self._store.update(PINS_KEY, apply, scope=ConfigScope.GLOBAL, default=[])
        logger.info(f"{'Pinned' if pinned else 'Unpinned'} script {script.name}")
        return pinned
