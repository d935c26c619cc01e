"""Bulb commands and their verification tolerances.

A ``Command`` is one of a closed set of kinds, each carrying its parameters and
a plain-data ``Verification`` describing what a post-command ``getPilot``
snapshot must show.  Bulbs clamp and round requested values, so brightness is
checked within a tolerance rather than exactly.

Protocol quirks preserved here
------------------------------
- Colour commands zero both white channels (``w`` and ``c``); otherwise the
  white LEDs bleed into the colour.
- Colour mode has a minimum brightness of 10, temperature mode of 1.
- ``temp`` and ``r``/``g``/``b`` never appear in the same command.
- Power off is ``{"state": false}``; ``dimming: 0`` does not mean off.

Usage
-----
>>> cmd = Command.color((255, 0, 0), brightness=60)
>>> cmd.params()
{'state': True, 'dimming': 60, 'r': 255, 'g': 0, 'b': 0, 'w': 0, 'c': 0}
>>> preset("chill", brightness=55).verification.brightness
55
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from loguru import logger

from wizlight.lan.protocol import RGB, PilotState, WizRequest

MIN_BRIGHTNESS = 1
MIN_COLOR_BRIGHTNESS = 10
MAX_BRIGHTNESS = 100
MIN_TEMPERATURE = 2200
MAX_TEMPERATURE = 6500
DEFAULT_TOLERANCE = 2


class CommandKind(str, Enum):
    """Supported bulb operations."""
    POWER_ON = "power_on"
    POWER_OFF = "power_off"
    BRIGHTNESS = "brightness"     # dimming only, keeps current colour mode
    WHITE = "white"               # colour temperature + dimming
    COLOR = "color"               # rgb + dimming, white channels zeroed


@dataclass(frozen=True)
class Verification:
    """Tolerance predicate over a ``PilotState`` snapshot."""

    power: bool = True
    brightness: int | None = None
    brightness_tolerance: int = DEFAULT_TOLERANCE
    temperature: int | None = None

    def check(self, pilot: PilotState) -> bool:
        if pilot.state != self.power:
            return False
        if not self.power:
            return True
        if self.brightness is not None:
            if pilot.dimming is None:
                return False
            if abs(pilot.dimming - self.brightness) > self.brightness_tolerance:
                return False
        if self.temperature is not None and pilot.temp != self.temperature:
            return False
        return True


def _check_brightness(level: int) -> int:
    if not MIN_BRIGHTNESS <= level <= MAX_BRIGHTNESS:
        raise ValueError(f"brightness must be {MIN_BRIGHTNESS}-{MAX_BRIGHTNESS}, got {level}")
    return level


def _check_rgb(rgb: RGB) -> RGB:
    if len(rgb) != 3 or any(not 0 <= v <= 255 for v in rgb):
        raise ValueError(f"rgb components must be 0-255, got {rgb}")
    return tuple(int(v) for v in rgb)  # type: ignore[return-value]


@dataclass(frozen=True)
class Command:
    """One ``setPilot`` mutation and how to verify it.

    Build instances with the classmethods; they enforce the protocol quirks.
    """

    kind: CommandKind
    brightness: int | None = None
    temperature: int | None = None
    color: RGB | None = None
    verification: Verification = Verification()

    # -- constructors --------------------------------------------------------

    @classmethod
    def power_on(cls) -> Command:
        return cls(CommandKind.POWER_ON, verification=Verification(power=True))

    @classmethod
    def power_off(cls) -> Command:
        return cls(CommandKind.POWER_OFF, verification=Verification(power=False))

    @classmethod
    def dim(cls, brightness: int, tolerance: int = DEFAULT_TOLERANCE) -> Command:
        brightness = _check_brightness(brightness)
        return cls(
            CommandKind.BRIGHTNESS,
            brightness=brightness,
            verification=Verification(brightness=brightness, brightness_tolerance=tolerance),
        )

    @classmethod
    def white(cls, kelvin: int, brightness: int = MAX_BRIGHTNESS, tolerance: int = DEFAULT_TOLERANCE) -> Command:
        brightness = _check_brightness(brightness)
        if not MIN_TEMPERATURE <= kelvin <= MAX_TEMPERATURE:
            raise ValueError(
                f"temperature must be {MIN_TEMPERATURE}-{MAX_TEMPERATURE}K, got {kelvin}"
            )
        return cls(
            CommandKind.WHITE,
            brightness=brightness,
            temperature=kelvin,
            verification=Verification(
                brightness=brightness, brightness_tolerance=tolerance, temperature=kelvin,
            ),
        )

    @classmethod
    def color(cls, rgb: RGB, brightness: int = MAX_BRIGHTNESS, tolerance: int = DEFAULT_TOLERANCE) -> Command:
        """Colour command.  Brightness below 10 is raised to 10."""
        rgb = _check_rgb(rgb)
        brightness = _check_brightness(brightness)
        if brightness < MIN_COLOR_BRIGHTNESS:
            logger.debug(
                "[Wiz/Command] colour brightness {} raised to {}", brightness, MIN_COLOR_BRIGHTNESS,
            )
            brightness = MIN_COLOR_BRIGHTNESS
        # rgb read-back is not reliable; power and dimming are.
        return cls(
            CommandKind.COLOR,
            brightness=brightness,
            color=rgb,
            verification=Verification(brightness=brightness, brightness_tolerance=tolerance),
        )

    # -- wire form -----------------------------------------------------------

    def params(self) -> dict[str, Any]:
        if self.kind == CommandKind.POWER_OFF:
            return {"state": False}
        p: dict[str, Any] = {"state": True}
        if self.brightness is not None:
            p["dimming"] = self.brightness
        if self.kind == CommandKind.WHITE:
            p["temp"] = self.temperature
        elif self.kind == CommandKind.COLOR:
            r, g, b = self.color  # type: ignore[misc]
            p.update(r=r, g=g, b=b, w=0, c=0)
        return p

    def to_request(self) -> WizRequest:
        return WizRequest.set_pilot(self.params())

    def with_brightness(self, brightness: int) -> Command:
        """Return a copy targeting *brightness*, keeping the kind and tolerance."""
        if self.kind == CommandKind.COLOR:
            return Command.color(
                self.color, brightness, self.verification.brightness_tolerance,  # type: ignore[arg-type]
            )
        if self.kind == CommandKind.WHITE:
            return Command.white(
                self.temperature, brightness, self.verification.brightness_tolerance,  # type: ignore[arg-type]
            )
        brightness = _check_brightness(brightness)
        return replace(
            self,
            kind=CommandKind.BRIGHTNESS,
            brightness=brightness,
            verification=replace(self.verification, power=True, brightness=brightness),
        )

    def describe(self) -> str:
        if self.kind == CommandKind.POWER_OFF:
            return "off"
        parts = []
        if self.brightness is not None:
            parts.append(f"{self.brightness}% brightness")
        if self.temperature is not None:
            parts.append(f"{self.temperature}K")
        if self.color is not None:
            parts.append("rgb({}, {}, {})".format(*self.color))
        return "  ·  ".join(parts) or "on"


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

PRESETS: dict[str, Command] = {
    "movie": Command.white(2200, brightness=1, tolerance=1),
    "chill": Command.white(2700, brightness=40),
    "day": Command.white(5000, brightness=100),
}


def preset(name: str, brightness: int | None = None) -> Command:
    """Return the named preset, optionally re-targeted to *brightness*."""
    try:
        cmd = PRESETS[name]
    except KeyError:
        raise ValueError(f"unknown preset {name!r} (expected one of {', '.join(PRESETS)})") from None
    if brightness is not None:
        cmd = cmd.with_brightness(brightness)
    return cmd


_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_hex_color(value: str) -> RGB:
    """Parse ``#rgb``, ``rgb``, ``#rrggbb`` or ``rrggbb``."""
    m = _HEX_RE.match(value.strip())
    if not m:
        raise ValueError(f"invalid hex color: {value!r}")
    digits = m.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)
