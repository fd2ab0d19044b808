"""React Native build and app tools."""

from __future__ import annotations

from typing import Any

from ..errors import ExternalCommandError, PreconditionError, ValidationError
from ..react_native import MAX_WARNINGS
from ..registry import ToolSpec
from ..results import TextResult
from . import ToolContext, schema

CATEGORY = "react-native"


def create_react_native_tools(ctx: ToolContext) -> list[ToolSpec]:
    manager = ctx.manager
    rn = ctx.react_native

    def bundle_id(args: dict[str, Any]) -> str:
        value = args.get("bundleId") or ctx.config.react_native.default_bundle_id
        if not value:
            raise ValidationError("bundleId is required (or set RN_BUNDLE_ID)", argument="bundleId")
        return value

    async def build_and_run(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        result = await rn.build_and_run(
            args["projectPath"],
            udid,
            mode=args.get("scheme", "Debug"),
            reset_cache=bool(args.get("resetCache")),
            verbose=bool(args.get("verbose")),
        )
        if not result.success:
            raise ExternalCommandError(
                f"Failed to build React Native app:\n\n{result.error}\n\n"
                "Please check your React Native project configuration and try again."
            )

        warnings = ""
        if result.warnings:
            shown = "\n".join(result.warnings[:MAX_WARNINGS])
            warnings = f"\n\nWarnings ({len(result.warnings)}):\n{shown}"
        return TextResult(
            "React Native app built and launched successfully!\n\n"
            f"Project: {args['projectPath']}\n"
            f"Simulator: {udid}\n"
            f"Build Time: {result.duration:.1f}s\n"
            f"Build Path: {result.build_path or 'unknown'}{warnings}\n\n"
            "The app is now running on the iOS simulator."
        )

    async def install(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await rn.install_app(args["appPath"], udid)
        return TextResult(
            "React Native app installed successfully!\n\n"
            f"App Path: {args['appPath']}\n"
            f"Simulator: {udid}\n\n"
            "The app is now available on the simulator's home screen."
        )

    async def launch(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        bundle = bundle_id(args)
        await rn.launch_app(bundle, udid)
        return TextResult(
            f"React Native app launched successfully!\n\nBundle ID: {bundle}\nSimulator: {udid}"
        )

    async def reload(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        bundle = bundle_id(args)
        await rn.reload_app(bundle, udid)
        return TextResult(
            "React Native app reloaded successfully!\n\n"
            f"Bundle ID: {bundle}\n"
            f"Simulator: {udid}\n\n"
            "The app has been terminated and relaunched with fresh code."
        )

    async def open_dev_menu(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        if manager.is_headless:
            raise PreconditionError(
                "The dev menu shortcut needs the Simulator window and is unavailable in headless mode"
            )
        await rn.open_dev_menu()
        return TextResult(
            f"React Native developer menu opened on {udid}!\n\n"
            "Use it to reload the app, toggle Fast Refresh, open React DevTools, "
            "or show the Performance Monitor."
        )

    async def enable_fast_refresh(args: dict[str, Any]) -> TextResult:
        return TextResult(
            "Fast Refresh is enabled!\n\n"
            "Fast Refresh is on by default in React Native 0.61+ projects. Code changes "
            "reload in the simulator when you save files, and component state is preserved.\n\n"
            "Toggle it from the dev menu ('open_rn_dev_menu') if it was turned off."
        )

    bundle_property = {"bundleId": {"type": "string", "description": "Bundle ID of the React Native app"}}

    return [
        ToolSpec(
            name="build_and_run_rn_app",
            description="Build and run a React Native app on iOS simulator",
            category=CATEGORY,
            handler=build_and_run,
            input_schema=schema(
                {
                    "projectPath": {"type": "string", "description": "Path to the React Native project directory"},
                    "scheme": {
                        "type": "string",
                        "enum": ["Debug", "Release"],
                        "description": "Build configuration (Debug/Release)",
                    },
                    "resetCache": {"type": "boolean", "description": "Reset Metro cache before building"},
                    "verbose": {"type": "boolean", "description": "Enable verbose build output"},
                },
                required=["projectPath"],
            ),
        ),
        ToolSpec(
            name="install_rn_app",
            description="Install a React Native app on the simulator",
            category=CATEGORY,
            handler=install,
            input_schema=schema(
                {"appPath": {"type": "string", "description": "Path to the .app bundle to install"}},
                required=["appPath"],
            ),
        ),
        ToolSpec(
            name="launch_rn_app",
            description="Launch a React Native app on the simulator",
            category=CATEGORY,
            handler=launch,
            input_schema=schema(bundle_property),
        ),
        ToolSpec(
            name="reload_rn_app",
            description="Reload a React Native app on the simulator",
            category=CATEGORY,
            handler=reload,
            input_schema=schema(bundle_property),
        ),
        ToolSpec(
            name="open_rn_dev_menu",
            description="Open the React Native developer menu",
            category=CATEGORY,
            handler=open_dev_menu,
            input_schema=schema(),
        ),
        ToolSpec(
            name="enable_fast_refresh",
            description="Enable Fast Refresh for React Native development",
            category=CATEGORY,
            handler=enable_fast_refresh,
            input_schema=schema(udid=False),
        ),
    ]
