"""MCP server for iOS Simulator and React Native testing.

``SimulatorMCPServer`` is the front door: it owns every component, validates
arguments against the registered schemas and hands valid calls to the router.
``create_app`` binds it to FastMCP for the stdio transport.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.exceptions import ValidationError as ArgumentError
from fastmcp.tools import Tool
from fastmcp.tools import ToolResult as WireResult
from mcp.types import ImageContent, TextContent
from pydantic import Field
from pydantic.json_schema import SkipJsonSchema

from .biometrics import BiometricSimulator
from .config import LoggingSettings, ServerConfig
from .errors import SimulatorMCPError, ValidationError
from .headless import HeadlessManager
from .idb import IDBClient
from .manager import SimulatorManager
from .polling import Clock, Sleep
from .process import ProcessExecutor
from .prompts import register_prompts
from .react_native import ReactNativeAppManager
from .registry import ToolRegistry
from .results import ToolResult
from .router import CommandRouter
from .sessions import SessionStore
from .simulator import SimctlClient
from .simulator_app import SimulatorApp
from .tools import ToolContext, build_tool_catalog
from .validation import validate_arguments

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


class FlushingStreamHandler(logging.StreamHandler):
    def emit(self, record):
        super().emit(record)
        self.flush()


def configure_logging(settings: LoggingSettings) -> None:
    """Log to stderr (stdout carries the MCP stdio channel) and optionally a file."""
    formatter = logging.Formatter(LOG_FORMAT)
    handler = FlushingStreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [handler]

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )


class SimulatorMCPServer:
    """Owns the simulator components and the tool catalog.

    Collaborators can be injected for tests; anything left out is built from
    ``config``.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        executor: ProcessExecutor | None = None,
        simctl: SimctlClient | None = None,
        companion: IDBClient | None = None,
        simulator_app: SimulatorApp | None = None,
        sleep: Sleep | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or ServerConfig()
        cfg = self.config
        extra: dict[str, Any] = {}
        if sleep is not None:
            extra["sleep"] = sleep

        self.executor = executor or ProcessExecutor()
        self.simctl = simctl or SimctlClient(self.executor, timeout=cfg.simulator.timeout)
        self.companion = companion or IDBClient(
            self.executor,
            timeout=cfg.idb.timeout,
            retry_attempts=cfg.idb.retry_attempts,
            retry_delay=cfg.idb.retry_delay,
        )
        self.simulator_app = simulator_app or SimulatorApp(self.executor)
        self.headless = HeadlessManager(cfg.headless, self.executor, **extra)
        self.sessions = SessionStore()

        manager_extra = dict(extra)
        if clock is not None:
            manager_extra["clock"] = clock
        self.manager = SimulatorManager(
            self.simctl,
            self.companion,
            self.sessions,
            timeout=cfg.simulator.timeout,
            poll_interval=cfg.simulator.poll_interval,
            auto_boot=cfg.simulator.auto_boot_on_create,
            headless=self.headless,
            simulator_app=self.simulator_app,
            **manager_extra,
        )
        self.react_native = ReactNativeAppManager(
            self.executor, self.companion, self.simulator_app, **extra
        )
        self.biometrics = BiometricSimulator(
            self.manager, self.companion, self.simulator_app, **extra
        )

        self.context = ToolContext(
            config=cfg,
            manager=self.manager,
            simctl=self.simctl,
            companion=self.companion,
            simulator_app=self.simulator_app,
            react_native=self.react_native,
            biometrics=self.biometrics,
            headless=self.headless,
            **extra,
        )
        self.registry = ToolRegistry()
        self.registry.register_all(build_tool_catalog(self.context))
        self.router = CommandRouter(self.registry)

    def list_tools(self) -> list[dict[str, Any]]:
        return [spec.to_definition() for spec in self.registry.all()]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Validate ``arguments`` and route the call.

        Raises:
            ValidationError: if the arguments do not match the tool's schema.
                Unknown tools are left to the router.
        """
        arguments = arguments or {}
        spec = self.registry.get(name)
        if spec is not None:
            arguments = validate_arguments(name, spec.input_schema, arguments)
        return await self.router.execute_command(name, arguments)

    async def start(self) -> None:
        """Prepare headless mode.

        Raises:
            SimulatorMCPError: if the configured headless mode cannot start
        """
        setup = await self.headless.setup()
        if not setup.success:
            raise SimulatorMCPError(f"Failed to setup headless mode: {setup.message}")
        logger.info(setup.message)

    async def stop(self) -> None:
        await self.headless.cleanup()

    def catalog_text(self) -> str:
        lines = [f"# {self.config.name} tools ({self.registry.count()})"]
        for category in self.registry.categories():
            lines.append("")
            lines.append(f"## {category}")
            for spec in self.registry.by_category(category):
                lines.append(f"- {spec.name}: {spec.description}")
        return "\n".join(lines)


def _wire_block(block: dict[str, Any]) -> TextContent | ImageContent:
    if block.get("type") == "image":
        return ImageContent.model_validate(block)
    return TextContent(type="text", text=str(block.get("text", "")))


class CatalogTool(Tool):
    """A registered tool exposed over MCP with its declared input schema."""

    front_door: SkipJsonSchema[Any] = Field(exclude=True)

    async def run(self, arguments: dict[str, Any]) -> WireResult:
        try:
            result = await self.front_door.call_tool(self.name, arguments)
        except ValidationError as e:
            raise ArgumentError(str(e)) from e
        if result.is_error:
            raise ToolError(result.text)
        return WireResult(content=[_wire_block(b) for b in result.content])


def create_app(config: ServerConfig | None = None, server: SimulatorMCPServer | None = None) -> FastMCP:
    """Build the FastMCP application around a ``SimulatorMCPServer``."""
    server = server or SimulatorMCPServer(config)
    cfg = server.config

    @asynccontextmanager
    async def lifespan(mcp: FastMCP):
        logger.info("=" * 60)
        logger.info(f"{cfg.name} v{cfg.version} starting...")
        logger.info(f"Tools: {server.registry.count()} in {len(server.registry.categories())} categories")
        logger.info(f"Default device: {cfg.simulator.default_device} (iOS {cfg.simulator.default_ios_version})")
        logger.info(f"Simulator timeout: {cfg.simulator.timeout:g}s, auto boot: {cfg.simulator.auto_boot_on_create}")
        logger.info(f"Headless: {cfg.headless.enabled} ({cfg.headless.mode})")
        logger.info(f"Screenshot dir: {cfg.artifacts.screenshot_dir}")
        logger.info(f"Log level: {cfg.logging.level}")
        logger.info("=" * 60)

        await server.start()
        logger.info("Server ready, waiting for MCP client connection...")
        try:
            yield
        finally:
            await server.stop()

    mcp = FastMCP(cfg.name, version=cfg.version, lifespan=lifespan)

    for spec in server.registry.all():
        mcp.add_tool(
            CatalogTool(
                name=spec.name,
                description=spec.description,
                parameters=spec.input_schema,
                tags={spec.category},
                front_door=server,
            )
        )

    register_prompts(mcp, server.manager)

    @mcp.resource("rn-ios-sim://tool-catalog")
    def get_tool_catalog() -> str:
        """Registered tools grouped by category."""
        return server.catalog_text()

    @mcp.resource("rn-ios-sim://sessions")
    def get_sessions() -> str:
        """Active simulator sessions."""
        return json.dumps([s.to_dict() for s in server.manager.get_all_sessions()], indent=2)

    return mcp


def main():
    """Run the MCP server."""
    config = ServerConfig.from_env()
    configure_logging(config.logging)
    create_app(config).run()


if __name__ == "__main__":
    main()
