"""
Canvas Loader and Mode Resolver

State machine:

    UNLOADED ──load_canvas()──► CANVAS_LOADED ──resolve_location_colours()──► RESOLVED
                                      ▲                                         │
                                      └──────────── resolve again ◄─────────────┘

``load_canvas`` finds the canvas definition by record hash in the canvases
log and caches it; the canvas is written once and only read afterwards.
``resolve_location_colours`` opens the canvas's votes and purchases logs,
picks the rule for the canvas's mode, and yields every (location, colour)
it discovers, publishing a LocationColoured event for each one. Every call
scans from scratch.

Rules by mode:

    FREE_FOR_ALL              first purchase at each location
    ONE_ALIAS_ONE_VOTE        first vote of each alias
    COLOUR_MARKET             no rule
    RADICAL_COLOUR_MARKET     no rule
    LOCATION_MARKET           no rule
    RADICAL_LOCATION_MARKET   no rule
    QUADRATIC_VOTE            no rule
    UNKNOWN                   no rule

A mode without a rule resolves to nothing and is not an error. Failures of
the underlying logs (ChannelUnavailable) propagate to the caller; pairs
already yielded before the failure stand.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Dict, Iterator, Optional

from colourcanvas.aggregators import (
    LocationColour,
    ScanReport,
    find_canvas,
    first_purchase_per_location,
    first_vote_per_alias,
)
from colourcanvas.channel import Channel, ChannelFactory
from colourcanvas.core import decode_base64url, encode_base64url
from colourcanvas.events import CanvasLoaded, EventBus, LocationColoured
from colourcanvas.model import Canvas, Mode
from colourcanvas.observability import Layer, get_logger

logger = get_logger("resolver", Layer.RESOLVER)


class LoaderState(Enum):
    UNLOADED = "unloaded"
    CANVAS_LOADED = "canvas_loaded"
    RESOLVED = "resolved"


# ════════════════════════════════════════════════════════════════════════════
# MODE RULES
# ════════════════════════════════════════════════════════════════════════════


ModeRule = Callable[[Channel, Channel, ScanReport], Iterator[LocationColour]]


def _free_for_all(votes: Channel, purchases: Channel, report: ScanReport) -> Iterator[LocationColour]:
    report.channel = purchases.name
    return first_purchase_per_location(purchases, report)


def _one_alias_one_vote(votes: Channel, purchases: Channel, report: ScanReport) -> Iterator[LocationColour]:
    report.channel = votes.name
    return first_vote_per_alias(votes, report)


def _no_rule(votes: Channel, purchases: Channel, report: ScanReport) -> Iterator[LocationColour]:
    return iter(())


MODE_RULES: Dict[Mode, ModeRule] = {
    Mode.FREE_FOR_ALL: _free_for_all,
    Mode.COLOUR_MARKET: _no_rule,
    Mode.RADICAL_COLOUR_MARKET: _no_rule,
    Mode.LOCATION_MARKET: _no_rule,
    Mode.RADICAL_LOCATION_MARKET: _no_rule,
    Mode.ONE_ALIAS_ONE_VOTE: _one_alias_one_vote,
    Mode.QUADRATIC_VOTE: _no_rule,
    Mode.UNKNOWN: _no_rule,
}

_unmapped = [m.name for m in Mode if m not in MODE_RULES]
if _unmapped:
    raise RuntimeError(f"modes without a resolution rule entry: {_unmapped}")


# ════════════════════════════════════════════════════════════════════════════
# LOADER
# ════════════════════════════════════════════════════════════════════════════


class CanvasLoader:
    """
    Loads one canvas and resolves the colours of its locations.

    Example:
        loader = CanvasLoader(DirectoryChannelFactory("logs"), record_hash)
        if loader.load_canvas() is not None:
            for location, colour in loader.resolve_location_colours():
                ...
    """

    def __init__(
        self,
        channels: ChannelFactory,
        record_hash: bytes,
        bus: Optional[EventBus] = None,
    ):
        self.channels = channels
        self.record_hash = record_hash
        self.canvas_id = encode_base64url(record_hash)
        self.bus = bus
        self._canvas: Optional[Canvas] = None
        self._state = LoaderState.UNLOADED
        self._report: Optional[ScanReport] = None
        self._lock = threading.Lock()

    @classmethod
    def from_canvas_id(
        cls,
        channels: ChannelFactory,
        canvas_id: str,
        bus: Optional[EventBus] = None,
    ) -> "CanvasLoader":
        return cls(channels, decode_base64url(canvas_id), bus=bus)

    @property
    def canvas(self) -> Optional[Canvas]:
        return self._canvas

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def report(self) -> Optional[ScanReport]:
        """Report of the most recently completed resolve, if any."""
        return self._report

    def load_canvas(self) -> Optional[Canvas]:
        """
        Find and cache the canvas.

        Returns the canvas, or None if the canvases log has no such record.
        The first successful call publishes CanvasLoaded; later calls return
        the cached canvas without scanning.
        """
        with self._lock:
            if self._canvas is not None:
                return self._canvas
            canvas = find_canvas(self.channels.canvases(), self.record_hash)
            if canvas is None:
                return None
            self._canvas = canvas
            self._state = LoaderState.CANVAS_LOADED

        logger.info(
            "canvas loaded",
            canvas=self.canvas_id,
            mode=canvas.mode.name,
            dimensions=canvas.dimensions,
        )
        if self.bus is not None:
            self.bus.publish(CanvasLoaded(canvas=canvas))
        return canvas

    def resolve_location_colours(self) -> Iterator[LocationColour]:
        """
        Yield (location, colour) pairs for the loaded canvas as they are found.

        Yields nothing when no canvas is loaded or the canvas's mode has no
        rule. The returned iterator is single-pass; call again to rescan.
        """
        canvas = self._canvas
        if canvas is None:
            logger.debug("resolve requested before canvas was loaded", canvas=self.canvas_id)
            return

        rule = MODE_RULES[canvas.mode]
        if rule is _no_rule:
            logger.debug("no resolution rule for mode", canvas=self.canvas_id, mode=canvas.mode.name)

        votes = self.channels.votes(canvas.canvas_id)
        purchases = self.channels.purchases(canvas.canvas_id)
        report = ScanReport()
        resolved = 0
        for location, colour in rule(votes, purchases, report):
            resolved += 1
            if self.bus is not None:
                self.bus.publish(LocationColoured(
                    canvas_id=canvas.canvas_id,
                    location=location,
                    colour=colour,
                ))
            yield location, colour

        self._report = report
        self._state = LoaderState.RESOLVED
        logger.info(
            "canvas resolved",
            canvas=self.canvas_id,
            mode=canvas.mode.name,
            locations=resolved,
            entries=report.entries,
            failures=report.failure_count,
        )

    def resolve(self, sink: Callable[[LocationColour], None]) -> int:
        """Push every resolved pair into ``sink``; returns how many were pushed."""
        count = 0
        for pair in self.resolve_location_colours():
            sink(pair)
            count += 1
        return count
