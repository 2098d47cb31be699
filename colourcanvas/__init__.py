"""
colourcanvas: resolution engine for shared colour canvases

A canvas is a bounded width × height × depth grid whose cells are coloured
by many independent participants. Participants append votes and purchases
to hash-linked logs; this package replays those logs and decides, under the
canvas's governance mode, which colour each location currently holds.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          RESOLUTION ENGINE                               │
    │                                                                          │
    │  resolver.py      CanvasLoader: load canvas, dispatch on mode, stream    │
    │  aggregators.py   per-location and whole-log folds over decoded records  │
    │  records.py       schema-checked payload decoding, typed failures        │
    │  channel.py       Channel capability, memory and JSONL implementations   │
    │  model.py         Canvas, Location, Colour, Vote, Purchase, Mode         │
    │                                                                          │
    │  events.py        CanvasLoaded / LocationColoured observers              │
    │  config.py        YAML + COLOUR_* environment configuration              │
    │  observability.py structured JSON logging                                │
    │  cli.py           colourcanvas command line                              │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.1.0"

from colourcanvas.model import (
    Canvas,
    Colour,
    Location,
    Mode,
    Purchase,
    Vote,
)

from colourcanvas.channel import (
    Channel,
    ChannelError,
    ChannelFactory,
    ChannelUnavailable,
    DirectoryChannelFactory,
    FileChannel,
    LogEntry,
    MemoryChannel,
    MemoryChannelFactory,
    Order,
)

from colourcanvas.records import (
    Decoded,
    DecodeFailure,
    decode_canvas,
    decode_purchase,
    decode_vote,
    encode_canvas,
    encode_purchase,
    encode_vote,
)

from colourcanvas.aggregators import (
    Outcome,
    ScanReport,
    alias_purchases,
    alias_votes,
    find_canvas,
    first_purchase_per_location,
    first_vote_per_alias,
    latest_purchase,
    latest_vote,
    list_canvases,
    purchased_colour,
    sort_hashes,
    voted_colour,
)

from colourcanvas.events import (
    CanvasLoaded,
    EventBus,
    LocationColoured,
)

from colourcanvas.resolver import (
    CanvasLoader,
    LoaderState,
)

__all__ = [
    "__version__",
    # Model
    "Canvas",
    "Colour",
    "Location",
    "Mode",
    "Purchase",
    "Vote",
    # Channels
    "Channel",
    "ChannelError",
    "ChannelFactory",
    "ChannelUnavailable",
    "DirectoryChannelFactory",
    "FileChannel",
    "LogEntry",
    "MemoryChannel",
    "MemoryChannelFactory",
    "Order",
    # Records
    "Decoded",
    "DecodeFailure",
    "decode_canvas",
    "decode_purchase",
    "decode_vote",
    "encode_canvas",
    "encode_purchase",
    "encode_vote",
    # Aggregators
    "Outcome",
    "ScanReport",
    "alias_purchases",
    "alias_votes",
    "find_canvas",
    "first_purchase_per_location",
    "first_vote_per_alias",
    "latest_purchase",
    "latest_vote",
    "list_canvases",
    "purchased_colour",
    "sort_hashes",
    "voted_colour",
    # Events
    "CanvasLoaded",
    "EventBus",
    "LocationColoured",
    # Resolver
    "CanvasLoader",
    "LoaderState",
]
