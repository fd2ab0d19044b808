"""Push notification and location tools."""

from __future__ import annotations

from typing import Any

from ..registry import ToolSpec
from ..results import TextResult
from . import ToolContext, schema

CATEGORY = "testing"

BANNER_TAP_POINT = (200, 80)
LOCK_SCREEN_TAP_POINT = (200, 200)


def build_payload(args: dict[str, Any]) -> dict[str, Any]:
    """APNs payload from notification tool arguments."""
    aps: dict[str, Any] = {"alert": {"title": args["title"], "body": args["body"]}}
    if args.get("url"):
        aps["url"] = args["url"]
    if args.get("badge") is not None:
        aps["badge"] = args["badge"]
    if args.get("sound"):
        aps["sound"] = args["sound"]
    if args.get("category"):
        aps["category"] = args["category"]

    payload: dict[str, Any] = {"aps": aps}
    if args.get("userData"):
        payload.update(args["userData"])
    return payload


NOTIFICATION_PROPERTIES: dict[str, Any] = {
    "bundleId": {"type": "string", "description": "Bundle ID of the target app (e.g., com.example.myapp)"},
    "title": {"type": "string", "description": "Notification title"},
    "body": {"type": "string", "description": "Notification body text"},
    "url": {
        "type": "string",
        "description": "Deep link URL (e.g., 'myapp://profile/123' or 'https://myapp.com/profile/123')",
    },
    "badge": {"type": "number", "description": "Badge count (optional)"},
    "sound": {"type": "string", "description": "Sound name (optional)"},
    "category": {"type": "string", "description": "Notification category for action buttons (optional)"},
    "userData": {"type": "object", "description": "Custom user data for app routing (optional)"},
}


def create_testing_tools(ctx: ToolContext) -> list[ToolSpec]:
    manager = ctx.manager
    idb = ctx.companion

    async def send_notification(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await ctx.simctl.push_notification(udid, args["bundleId"], build_payload(args))

        lines = [
            "Notification sent successfully!",
            "",
            f"App: {args['bundleId']}",
            f"Title: {args['title']}",
            f"Body: {args['body']}",
        ]
        if args.get("url"):
            lines.append(f"Deep Link: {args['url']}")
        badge = args.get("badge")
        lines.append(f"Badge: {'none' if badge is None else badge}")
        lines.append(f"Sound: {args.get('sound') or 'default'}")
        if args.get("category"):
            lines.append(f"Category: {args['category']}")
        lines.append("")
        closing = "The notification has been delivered to the simulator."
        if args.get("url"):
            closing += f" Tapping the notification will open the deep link: {args['url']}"
        lines.append(closing)
        return TextResult("\n".join(lines))

    async def send_notification_and_tap(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        method = args.get("method") or "banner"
        tap_delay = args.get("tapDelay")
        if tap_delay is None:
            tap_delay = 1.0
        payload = build_payload(args)
        steps: list[str] = []

        if method == "banner":
            steps.append("1. Sending notification...")
            await ctx.simctl.push_notification(udid, args["bundleId"], payload)
            steps.append(f"2. Waiting {tap_delay} seconds for notification to appear...")
            await ctx.sleep(tap_delay)
            steps.append("3. Tapping notification banner area...")
            await idb.tap(udid, *BANNER_TAP_POINT)
        else:
            steps.append("1. Locking device...")
            await idb.press_button(udid, "LOCK")
            await ctx.sleep(1.0)
            steps.append("2. Sending notification...")
            await ctx.simctl.push_notification(udid, args["bundleId"], payload)
            await ctx.sleep(2.0)
            steps.append("3. Tapping notification on lock screen...")
            await idb.tap(udid, *LOCK_SCREEN_TAP_POINT)
            await ctx.sleep(1.0)

        text = (
            "Notification sent and tapped successfully!\n\n"
            f"Method: {method}\n"
            f"App: {args['bundleId']}\n"
            f"Title: {args['title']}\n"
            f"Body: {args['body']}\n"
        )
        if args.get("url"):
            text += f"Deep Link: {args['url']}\n"
        text += f"Tap Delay: {tap_delay} seconds\n\nSteps performed:\n" + "\n".join(steps)
        if args.get("url"):
            text += f"\n\nThe app should now open to: {args['url']}"
        return TextResult(text)

    async def set_location(args: dict[str, Any]) -> TextResult:
        udid = await manager.resolve_udid(args.get("udid"))
        await idb.set_location(udid, args["latitude"], args["longitude"])
        return TextResult(
            "Location set successfully!\n\n"
            f"Latitude: {args['latitude']}\n"
            f"Longitude: {args['longitude']}\n\n"
            "The simulator's GPS location has been updated."
        )

    return [
        ToolSpec(
            name="send_notification",
            description="Send a push notification to an app",
            category=CATEGORY,
            handler=send_notification,
            input_schema=schema(NOTIFICATION_PROPERTIES, required=["bundleId", "title", "body"]),
        ),
        ToolSpec(
            name="send_notification_and_tap",
            description="Send a push notification and automatically tap it in the notification banner area",
            category=CATEGORY,
            handler=send_notification_and_tap,
            input_schema=schema(
                {
                    **NOTIFICATION_PROPERTIES,
                    "method": {
                        "type": "string",
                        "enum": ["banner", "lock_screen"],
                        "description": "Method to tap notification (default: banner)",
                    },
                    "tapDelay": {
                        "type": "number",
                        "description": "Delay in seconds before tapping notification (default: 1.0)",
                    },
                },
                required=["bundleId", "title", "body"],
            ),
        ),
        ToolSpec(
            name="set_location",
            description="Set the simulator's GPS location",
            category=CATEGORY,
            handler=set_location,
            input_schema=schema(
                {
                    "latitude": {"type": "number", "description": "Latitude coordinate"},
                    "longitude": {"type": "number", "description": "Longitude coordinate"},
                },
                required=["latitude", "longitude"],
            ),
        ),
    ]
