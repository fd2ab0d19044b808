"""Face ID and Touch ID tools."""

from __future__ import annotations

from typing import Any

from ..biometrics import LABELS, BiometricKind
from ..registry import ToolSpec
from ..results import TextResult
from . import ToolContext, schema

CATEGORY = "biometric-simulation"


def create_biometric_tools(ctx: ToolContext) -> list[ToolSpec]:
    def make_handler(kind: BiometricKind, matching: bool):
        async def handler(args: dict[str, Any]) -> TextResult:
            outcome = await ctx.biometrics.simulate(kind, matching, args.get("udid"))
            return TextResult(outcome.message)

        return handler

    specs = []
    for kind in ("face_id", "touch_id"):
        for matching in (True, False):
            prefix = "matching" if matching else "non_matching"
            verdict = "successful" if matching else "failed"
            specs.append(
                ToolSpec(
                    name=f"simulate_{prefix}_{kind}",
                    description=(
                        f"Simulate a {verdict} {LABELS[kind]} authentication "
                        "(taps Continue on the enrollment dialog, then sends the Simulator shortcut)"
                    ),
                    category=CATEGORY,
                    handler=make_handler(kind, matching),
                    input_schema=schema(),
                )
            )
    return specs
