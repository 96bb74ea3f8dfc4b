from __future__ import annotations

import asyncio
import logging
from typing import Any

from .watcher import ResponseWatcher

logger = logging.getLogger(__name__)


class ControlSurface:
    """Answer control directives for one running watcher.

    Acknowledgements are synchronous; a toggle schedules the state change
    on the event loop and exposes it as ``pending`` until it completes.
    """

    def __init__(self, watcher: ResponseWatcher) -> None:
        self.watcher = watcher
        self.pending: asyncio.Task | None = None

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        action = message.get("action") if isinstance(message, dict) else None
        if action == "toggle":
            enabled = message.get("enabled")
            if not isinstance(enabled, bool):
                return {"success": False, "error": "'enabled' must be a boolean"}
            self.pending = asyncio.get_running_loop().create_task(self.watcher.set_enabled(enabled))
            return {"success": True}
        if action == "getStatus":
            return self.watcher.status()
        if action == "getDebugInfo":
            info = self.watcher.debug_info()
            logger.info("Debug info requested: %s", info)
            return info
        logger.warning("Unknown control action: %r", action)
        return {"success": False, "error": f"unknown action: {action!r}"}
