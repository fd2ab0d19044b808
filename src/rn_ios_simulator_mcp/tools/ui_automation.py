"""Touch, keyboard, capture and accessibility tools."""

from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path
from typing import Any

from PIL import Image

from ..registry import ToolSpec
from ..results import RawEnvelope, TextResult, image_block, text_block
from . import ToolContext, schema

CATEGORY = "ui-automation"

HARDWARE_BUTTONS = ["APPLE_PAY", "HOME", "LOCK", "SIDE_BUTTON", "SIRI"]
SCROLL_DIRECTIONS = ["up", "down", "left", "right"]


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def optimize_screenshot(
    source: Path, target_dir: Path, scale: float, fmt: str, quality: int
) -> tuple[Path, str]:
    """Resize and re-encode a PNG screenshot.

    Returns:
        Path of the written file and a summary of the size change
    """
    original_file_size = source.stat().st_size
    stem = source.stem

    with Image.open(source) as img:
        original_size = img.size
        if scale < 1.0:
            img = img.resize(
                (max(1, int(img.width * scale)), max(1, int(img.height * scale))),
                Image.Resampling.LANCZOS,
            )

        if fmt == "jpeg":
            if img.mode in ("RGBA", "LA", "P"):
                rgba = img.convert("RGBA")
                background = Image.new("RGB", rgba.size, (255, 255, 255))
                background.paste(rgba, mask=rgba.split()[3])
                img = background
            filepath = target_dir / f"{stem}.jpg"
            img.save(filepath, "JPEG", quality=quality, optimize=True)
        else:
            filepath = target_dir / f"{stem}.png"
            img.save(filepath, "PNG", optimize=True)
        new_size = img.size

    new_file_size = filepath.stat().st_size
    if filepath != source:
        source.unlink(missing_ok=True)

    reduction = ((original_file_size - new_file_size) / original_file_size) * 100 if original_file_size else 0.0
    summary = (
        f"Original: {original_size[0]}x{original_size[1]} ({original_file_size / 1024:.1f}KB)\n"
        f"Optimized: {new_size[0]}x{new_size[1]} ({new_file_size / 1024:.1f}KB)\n"
        f"Reduction: {reduction:.1f}%"
    )
    return filepath, summary


def create_ui_automation_tools(ctx: ToolContext) -> list[ToolSpec]:
    manager = ctx.manager
    idb = ctx.companion

    async def take_screenshot(args: dict[str, Any]) -> TextResult | RawEnvelope:
        udid = await manager.resolve_udid(args.get("udid"))
        if args.get("outputPath"):
            raw_path = Path(args["outputPath"]).expanduser().with_suffix(".png")
        else:
            raw_path = ctx.config.artifacts.screenshot_dir / f"screenshot-{_timestamp()}.png"
        await ctx.simctl.screenshot(udid, raw_path)

        scale = min(max(float(args.get("scale", 1.0)), 0.1), 1.0)
        quality = min(max(int(args.get("quality", 85)), 1), 100)
        fmt = args.get("format", "png")
        filepath, summary = optimize_screenshot(raw_path, raw_path.parent, scale, fmt, quality)

        text = (
            "Screenshot captured successfully!\n\n"
            f"Simulator: {udid}\n"
            f"Saved to: {filepath}\n"
            f"{summary}"
        )
        if not args.get("includeImage"):
            return TextResult(text)
        mime_type = "image/jpeg" if fmt == "jpeg" else "image/png"
        return RawEnvelope([text_block(text), image_block(filepath.read_bytes(), mime_type)])

    async def tap(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.tap(udid, args["x"], args["y"], args.get("duration"))
        return TextResult(f"Tapped at coordinates ({args['x']}, {args['y']}) on {udid}")

    async def long_press(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        duration = args.get("duration", 2.0)
        await idb.long_press(udid, args["x"], args["y"], duration)
        return TextResult(
            f"Long pressed at coordinates ({args['x']}, {args['y']}) for {duration}s on {udid}"
        )

    async def input_text(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.input_text(udid, args["text"])
        return TextResult(f'Typed text "{args["text"]}" on {udid}')

    async def press_key(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.press_key(udid, args["key"], args.get("duration"))
        return TextResult(f'Pressed key "{args["key"]}" on {udid}')

    async def press_key_sequence(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        keys = [str(k) for k in args["keys"]]
        await idb.press_key_sequence(udid, keys)
        return TextResult(f"Pressed key sequence [{', '.join(keys)}] on {udid}")

    async def clear_text_field(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.clear_text(udid, int(args.get("maxCharacters", 50)))
        return TextResult(f"Cleared the focused text field on {udid}")

    async def swipe(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.swipe(
            udid,
            args["fromX"],
            args["fromY"],
            args["toX"],
            args["toY"],
            duration=args.get("duration"),
            delta=args.get("delta"),
        )
        return TextResult(
            f"Swiped from ({args['fromX']}, {args['fromY']}) to ({args['toX']}, {args['toY']}) on {udid}"
        )

    async def scroll(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        distance = args.get("distance", 200)
        x1, y1, x2, y2 = await idb.scroll(
            udid,
            args["x"],
            args["y"],
            args["direction"],
            distance=distance,
            duration=args.get("duration", 0.5),
        )
        return TextResult(
            f"Scrolled {args['direction']} by {distance} points on {udid}\n"
            f"Swipe: ({x1}, {y1}) -> ({x2}, {y2})"
        )

    async def press_hardware_button(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.press_button(udid, args["button"], args.get("duration"))
        return TextResult(f"Pressed hardware button {args['button']} on {udid}")

    async def inspect_element(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        description = await idb.describe_point(udid, args["x"], args["y"])
        return TextResult(
            f"Element at ({args['x']}, {args['y']}):\n\n{description or 'No element found'}"
        )

    async def get_accessibility_elements(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        description = await idb.describe_all(udid)
        return TextResult(f"Accessibility elements on {udid}:\n\n{description or 'No elements found'}")

    async def record_video(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        if args.get("outputPath"):
            output = Path(args["outputPath"]).expanduser()
        else:
            output = ctx.config.artifacts.video_dir / f"recording-{_timestamp()}.mp4"
        duration = args.get("duration")
        recording = await idb.start_recording(udid, output, duration)
        return TextResult(
            "Video recording started!\n\n"
            f"Recording to: {recording.output_path}\n"
            f"Duration: {f'{duration} seconds' if duration else 'Until stopped'}\n"
            f"Process ID: {recording.pid}\n\n"
            "Use 'stop_video_recording' to finish the recording."
        )

    async def stop_video_recording(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        recording = await idb.stop_recording(udid)
        if recording is None:
            return TextResult(f"No video recording in progress for {udid}")
        elapsed = (datetime.now() - recording.started_at).total_seconds()
        return TextResult(
            f"Video recording stopped.\n\nSaved to: {recording.output_path}\nDuration: {elapsed:.1f}s"
        )

    coordinate = {
        "x": {"type": "number", "description": "X coordinate"},
        "y": {"type": "number", "description": "Y coordinate"},
    }

    return [
        ToolSpec(
            name="take_screenshot",
            description="Take a screenshot of the current simulator screen",
            category=CATEGORY,
            handler=take_screenshot,
            input_schema=schema(
                {
                    "outputPath": {
                        "type": "string",
                        "description": "Path to save screenshot (optional, uses SCREENSHOT_PATH if not provided)",
                    },
                    "scale": {"type": "number", "description": "Scale factor 0.1-1.0 (default 1.0)"},
                    "format": {"type": "string", "enum": ["png", "jpeg"], "description": "Image format"},
                    "quality": {"type": "integer", "description": "JPEG quality 1-100 (default 85)"},
                    "includeImage": {
                        "type": "boolean",
                        "description": "Return the image itself in addition to its path",
                    },
                }
            ),
        ),
        ToolSpec(
            name="tap_coordinates",
            description="Tap at specific screen coordinates",
            category=CATEGORY,
            handler=tap,
            input_schema=schema(
                {**coordinate, "duration": {"type": "number", "description": "Tap duration in seconds"}},
                required=["x", "y"],
            ),
        ),
        ToolSpec(
            name="long_press_coordinates",
            description="Long press at specific screen coordinates",
            category=CATEGORY,
            handler=long_press,
            input_schema=schema(
                {**coordinate, "duration": {"type": "number", "description": "Press duration in seconds (default 2.0)"}},
                required=["x", "y"],
            ),
        ),
        ToolSpec(
            name="input_text",
            description="Type text into the focused input field",
            category=CATEGORY,
            handler=input_text,
            input_schema=schema(
                {"text": {"type": "string", "description": "Text to type"}}, required=["text"]
            ),
        ),
        ToolSpec(
            name="press_key",
            description="Press a keyboard key",
            category=CATEGORY,
            handler=press_key,
            input_schema=schema(
                {
                    "key": {
                        "type": "string",
                        "description": "Key to press (e.g., 'enter', 'backspace', 'escape', or a HID key code)",
                    },
                    "duration": {"type": "number", "description": "Key press duration in seconds"},
                },
                required=["key"],
            ),
        ),
        ToolSpec(
            name="press_key_sequence",
            description="Press a sequence of keys",
            category=CATEGORY,
            handler=press_key_sequence,
            input_schema=schema(
                {
                    "keys": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Array of key names or key codes to press in sequence",
                    }
                },
                required=["keys"],
            ),
        ),
        ToolSpec(
            name="clear_text_field",
            description="Clear the currently focused text field",
            category=CATEGORY,
            handler=clear_text_field,
            input_schema=schema(
                {
                    "maxCharacters": {
                        "type": "integer",
                        "description": "Number of characters to delete (default 50)",
                    }
                }
            ),
        ),
        ToolSpec(
            name="swipe_gesture",
            description="Perform a swipe gesture between two points",
            category=CATEGORY,
            handler=swipe,
            input_schema=schema(
                {
                    "fromX": {"type": "number", "description": "Starting X coordinate"},
                    "fromY": {"type": "number", "description": "Starting Y coordinate"},
                    "toX": {"type": "number", "description": "Ending X coordinate"},
                    "toY": {"type": "number", "description": "Ending Y coordinate"},
                    "duration": {"type": "number", "description": "Swipe duration in seconds"},
                    "delta": {"type": "number", "description": "Distance between touch points"},
                },
                required=["fromX", "fromY", "toX", "toY"],
            ),
        ),
        ToolSpec(
            name="scroll_gesture",
            description="Scroll the content in a direction from a starting point",
            category=CATEGORY,
            handler=scroll,
            input_schema=schema(
                {
                    **coordinate,
                    "direction": {
                        "type": "string",
                        "enum": SCROLL_DIRECTIONS,
                        "description": "Direction to scroll the content",
                    },
                    "distance": {"type": "number", "description": "Scroll distance in points (default 200)"},
                    "duration": {"type": "number", "description": "Gesture duration in seconds (default 0.5)"},
                },
                required=["x", "y", "direction"],
            ),
        ),
        ToolSpec(
            name="press_hardware_button",
            description="Press a hardware button on the simulator",
            category=CATEGORY,
            handler=press_hardware_button,
            input_schema=schema(
                {
                    "button": {
                        "type": "string",
                        "enum": HARDWARE_BUTTONS,
                        "description": "Hardware button to press",
                    },
                    "duration": {"type": "number", "description": "Press duration in seconds"},
                },
                required=["button"],
            ),
        ),
        ToolSpec(
            name="inspect_element",
            description="Describe the accessibility element at a screen point",
            category=CATEGORY,
            handler=inspect_element,
            input_schema=schema(coordinate, required=["x", "y"]),
        ),
        ToolSpec(
            name="get_accessibility_elements",
            description="Describe every accessibility element on screen",
            category=CATEGORY,
            handler=get_accessibility_elements,
            input_schema=schema(),
        ),
        ToolSpec(
            name="record_video",
            description="Start recording video of the simulator screen",
            category=CATEGORY,
            handler=record_video,
            input_schema=schema(
                {
                    "outputPath": {
                        "type": "string",
                        "description": "Path to save video file (optional, uses VIDEO_PATH if not provided)",
                    },
                    "duration": {"type": "number", "description": "Recording duration in seconds (optional)"},
                }
            ),
        ),
        ToolSpec(
            name="stop_video_recording",
            description="Stop the video recording in progress",
            category=CATEGORY,
            handler=stop_video_recording,
            input_schema=schema(),
        ),
    ]
