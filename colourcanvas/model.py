"""
Canvas Data Model

Value types shared by the decoder, the aggregators and the resolver.

    Canvas      bounded width × height × depth grid with a fixed Mode
    Location    integer (x, y, z) cell, usable as a dict key
    Colour      RGBA value, usable as a dict key
    Vote        creator + location + colour
    Purchase    creator + location + colour + price

Every type here is a frozen dataclass: records read from a log are facts and
are never mutated once decoded.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from colourcanvas.core import encode_base64url


class Mode(Enum):
    """Governance rule set of a canvas."""
    UNKNOWN = 0
    FREE_FOR_ALL = 1
    COLOUR_MARKET = 2
    RADICAL_COLOUR_MARKET = 3
    LOCATION_MARKET = 4
    RADICAL_LOCATION_MARKET = 5
    ONE_ALIAS_ONE_VOTE = 6
    QUADRATIC_VOTE = 7

    @classmethod
    def parse(cls, value: Union[str, int, "Mode", None]) -> "Mode":
        """Map a name or number to a Mode; anything unrecognised is UNKNOWN."""
        if isinstance(value, Mode):
            return value
        if isinstance(value, bool):
            return cls.UNKNOWN
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.UNKNOWN
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper(), cls.UNKNOWN)
        return cls.UNKNOWN


@dataclass(frozen=True)
class Location:
    """A cell of the canvas."""
    x: int
    y: int
    z: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(x=int(data["x"]), y=int(data["y"]), z=int(data.get("z", 0)))

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


@dataclass(frozen=True)
class Colour:
    """An RGBA colour with 8-bit channels."""
    red: int
    green: int
    blue: int
    alpha: int = 255

    def __post_init__(self) -> None:
        for name in ("red", "green", "blue", "alpha"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 255:
                raise ValueError(f"{name} must be an int in [0, 255], got {value!r}")

    @property
    def hex(self) -> str:
        """Render as ``#rrggbb`` (``#rrggbbaa`` when not opaque)."""
        out = f"#{self.red:02x}{self.green:02x}{self.blue:02x}"
        if self.alpha != 255:
            out += f"{self.alpha:02x}"
        return out

    @classmethod
    def from_hex(cls, text: str) -> "Colour":
        """Parse ``#rrggbb`` or ``#rrggbbaa`` (leading ``#`` optional)."""
        s = str(text or "").strip().lstrip("#")
        if len(s) not in (6, 8):
            raise ValueError(f"invalid colour: {text!r}")
        try:
            channels = [int(s[i:i + 2], 16) for i in range(0, len(s), 2)]
        except ValueError:
            raise ValueError(f"invalid colour: {text!r}") from None
        return cls(*channels)

    def to_dict(self) -> Dict[str, int]:
        return {"red": self.red, "green": self.green, "blue": self.blue, "alpha": self.alpha}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Colour":
        return cls(
            red=int(data["red"]),
            green=int(data["green"]),
            blue=int(data["blue"]),
            alpha=int(data.get("alpha", 255)),
        )

    def __str__(self) -> str:
        return self.hex


@dataclass(frozen=True)
class Canvas:
    """
    Canvas metadata, decoded from the record that created it.

    The record hash is the canvas identity; votes and purchases logs are
    named after its base64url form (``canvas_id``).
    """
    record_hash: bytes
    name: str
    width: int
    height: int
    depth: int
    mode: Mode

    @property
    def canvas_id(self) -> str:
        return encode_base64url(self.record_hash)

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}x{self.depth}"

    def contains(self, location: Location) -> bool:
        """True if the location lies inside the canvas bounds."""
        return (
            0 <= location.x < self.width
            and 0 <= location.y < self.height
            and 0 <= location.z < self.depth
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canvas_id": self.canvas_id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "depth": self.depth,
            "mode": self.mode.name,
        }


@dataclass(frozen=True)
class Vote:
    creator: str
    location: Location
    colour: Colour


@dataclass(frozen=True)
class Purchase:
    creator: str
    location: Location
    colour: Colour
    price: int
