"""Routes tool calls to handlers and normalizes what comes back."""

from __future__ import annotations

import logging
from typing import Any

from .errors import NotFoundError
from .registry import ToolRegistry
from .results import ToolResult, normalize_result

logger = logging.getLogger(__name__)


class CommandRouter:
    """Looks up a tool, runs its handler, and returns a ``ToolResult``.

    ``execute_command`` never raises. An unknown tool and a failing handler
    both come back as an error envelope; only the message tells them apart.
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute_command(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        arguments = arguments or {}
        logger.debug(f"Routing command: {name} args={arguments}")
        try:
            spec = self.registry.get(name)
            if spec is None:
                raise NotFoundError(f"Tool not found: {name}")

            logger.info(f"Executing tool: {name} ({spec.category})")
            result = normalize_result(await spec.handler(arguments))
            logger.debug(f"Tool {name} completed successfully")
            return result
        except Exception as e:
            logger.error(f"Tool execution failed: {name}: {e}", exc_info=not isinstance(e, NotFoundError))
            return ToolResult.error(f"Error executing {name}: {e}")

    def has_command(self, name: str) -> bool:
        return self.registry.has(name)

    def available_commands(self) -> list[str]:
        return [t.name for t in self.registry.all()]

    def commands_by_category(self, category: str) -> list[str]:
        return [t.name for t in self.registry.by_category(category)]
