"""
Canvas Aggregators

Folds of a log's decoded records into colour decisions.

Per-location aggregators
────────────────────────

    voted_colour        majority of votes, stored order
    latest_vote         newest vote at the location, stops at first match
    purchased_colour    highest bid, stored order
    latest_purchase     newest purchase at the location, stops at first match

Each returns an Outcome: the colour (None when undecided) and the
ScanReport of the pass. Ties are decided by whoever reached the winning
value first in stored order: the leader only changes on a strictly greater
count or price.

Whole-log aggregators
─────────────────────

    first_purchase_per_location   FREE_FOR_ALL: first purchase at a location wins
    first_vote_per_alias          ONE_ALIAS_ONE_VOTE: an alias's first vote anywhere is final

Both are generators yielding (Location, Colour) as they are discovered.

Every aggregator owns its accumulator for the duration of one call; nothing
is shared between calls and entries are never modified.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from colourcanvas.channel import Channel, LogEntry, Order
from colourcanvas.model import Canvas, Colour, Location, Purchase, Vote
from colourcanvas.observability import Layer, get_logger, timed_operation
from colourcanvas.records import (
    Decoded,
    DecodeFailure,
    Decoder,
    decode_canvas,
    decode_purchase,
    decode_vote,
)

logger = get_logger("aggregators", Layer.AGGREGATOR)

R = TypeVar("R")

LocationColour = Tuple[Location, Colour]


# ════════════════════════════════════════════════════════════════════════════
# SCAN REPORTING
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class ScanReport:
    """What a single pass over a channel saw."""
    channel: str = ""
    entries: int = 0
    failures: List[DecodeFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def record(self, result: Any) -> None:
        self.entries += 1
        if isinstance(result, DecodeFailure):
            self.failures.append(result)
            logger.warning(
                "skipping undecodable entry",
                channel=self.channel,
                entry=result.entry_hash,
                creator=result.creator,
                reason=result.reason,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "entries": self.entries,
            "failure_count": self.failure_count,
            "failures": [f.to_dict() for f in self.failures],
        }


@dataclass(frozen=True)
class Outcome:
    """Result of a per-location aggregation."""
    colour: Optional[Colour]
    report: ScanReport

    @property
    def decided(self) -> bool:
        return self.colour is not None


# ════════════════════════════════════════════════════════════════════════════
# ACCUMULATORS
# ════════════════════════════════════════════════════════════════════════════


class Accumulator(ABC, Generic[R]):
    """Fold state for one aggregation. ``feed`` returns False to stop the scan."""

    @abstractmethod
    def feed(self, record: R) -> bool:
        ...

    @abstractmethod
    def result(self) -> Optional[Colour]:
        ...


class MajorityTally(Accumulator[Vote]):
    """Colour with the most votes at a location; first to reach the maximum keeps it."""

    def __init__(self, location: Location):
        self.location = location
        self.counts: Dict[Colour, int] = {}
        self.leader: Optional[Colour] = None
        self.leader_count = 0

    def feed(self, record: Vote) -> bool:
        if record.location != self.location:
            return True
        count = self.counts.get(record.colour, 0) + 1
        self.counts[record.colour] = count
        if count > self.leader_count:
            self.leader = record.colour
            self.leader_count = count
        return True

    def result(self) -> Optional[Colour]:
        return self.leader


class HighestBid(Accumulator[Purchase]):
    """Colour of the highest-priced purchase at a location; earliest wins on equal price."""

    def __init__(self, location: Location):
        self.location = location
        self.colour: Optional[Colour] = None
        self.max_price: Optional[int] = None

    def feed(self, record: Purchase) -> bool:
        if record.location != self.location:
            return True
        if self.max_price is None or record.price > self.max_price:
            self.colour = record.colour
            self.max_price = record.price
        return True

    def result(self) -> Optional[Colour]:
        return self.colour


class FirstMatch(Accumulator[Any]):
    """Colour of the first record seen at a location. Used with newest-first scans."""

    def __init__(self, location: Location):
        self.location = location
        self.colour: Optional[Colour] = None

    def feed(self, record: Any) -> bool:
        if record.location == self.location:
            self.colour = record.colour
            return False
        return True

    def result(self) -> Optional[Colour]:
        return self.colour


class FirstPerLocation:
    """Emits a purchase only if its location has not been emitted yet."""

    def __init__(self) -> None:
        self.seen: Set[Location] = set()

    def offer(self, record: Purchase) -> Optional[LocationColour]:
        if record.location in self.seen:
            return None
        self.seen.add(record.location)
        return record.location, record.colour


class FirstPerAlias:
    """Emits a vote only if its creator has not voted yet, anywhere on the canvas."""

    def __init__(self) -> None:
        self.seen: Set[str] = set()

    def offer(self, record: Vote) -> Optional[LocationColour]:
        if record.creator in self.seen:
            return None
        self.seen.add(record.creator)
        return record.location, record.colour


# ════════════════════════════════════════════════════════════════════════════
# DRIVERS
# ════════════════════════════════════════════════════════════════════════════


def fold(
    channel: Channel,
    decoder: Decoder,
    accumulator: Accumulator,
    order: Order = Order.STORED,
) -> Outcome:
    """Feed every decodable record of ``channel`` to ``accumulator``."""
    report = ScanReport(channel=channel.name)

    def _on_entry(entry: LogEntry) -> bool:
        result = decoder(entry)
        report.record(result)
        if isinstance(result, Decoded):
            return accumulator.feed(result.record)
        return True

    channel.iterate(_on_entry, order)
    return Outcome(colour=accumulator.result(), report=report)


def decoded_records(
    channel: Channel,
    decoder: Decoder,
    order: Order = Order.STORED,
    report: Optional[ScanReport] = None,
) -> Iterator[Any]:
    """Lazily yield decodable records, recording every entry in ``report``."""
    if report is None:
        report = ScanReport(channel=channel.name)
    for entry in channel.entries(order):
        result = decoder(entry)
        report.record(result)
        if isinstance(result, Decoded):
            yield result.record


# ════════════════════════════════════════════════════════════════════════════
# PER-LOCATION AGGREGATORS
# ════════════════════════════════════════════════════════════════════════════


@timed_operation(logger, "voted_colour")
def voted_colour(votes: Channel, location: Location) -> Outcome:
    """Majority of votes at ``location``."""
    return fold(votes, decode_vote, MajorityTally(location))


@timed_operation(logger, "latest_vote")
def latest_vote(votes: Channel, location: Location) -> Outcome:
    """Most recent vote at ``location``."""
    return fold(votes, decode_vote, FirstMatch(location), Order.NEWEST_FIRST)


@timed_operation(logger, "purchased_colour")
def purchased_colour(purchases: Channel, location: Location) -> Outcome:
    """Highest bid at ``location``."""
    return fold(purchases, decode_purchase, HighestBid(location))


@timed_operation(logger, "latest_purchase")
def latest_purchase(purchases: Channel, location: Location) -> Outcome:
    """Most recent purchase at ``location``."""
    return fold(purchases, decode_purchase, FirstMatch(location), Order.NEWEST_FIRST)


# ════════════════════════════════════════════════════════════════════════════
# WHOLE-LOG AGGREGATORS
# ════════════════════════════════════════════════════════════════════════════


def first_purchase_per_location(
    purchases: Channel,
    report: Optional[ScanReport] = None,
) -> Iterator[LocationColour]:
    """First purchase at each location wins; later purchases there are ignored."""
    state = FirstPerLocation()
    for purchase in decoded_records(purchases, decode_purchase, Order.STORED, report):
        emitted = state.offer(purchase)
        if emitted is not None:
            yield emitted


def first_vote_per_alias(
    votes: Channel,
    report: Optional[ScanReport] = None,
) -> Iterator[LocationColour]:
    """Each alias's first vote anywhere on the canvas counts; the rest are ignored."""
    state = FirstPerAlias()
    for vote in decoded_records(votes, decode_vote, Order.STORED, report):
        emitted = state.offer(vote)
        if emitted is not None:
            yield emitted


# ════════════════════════════════════════════════════════════════════════════
# LISTINGS
# ════════════════════════════════════════════════════════════════════════════


def alias_votes(votes: Channel, alias: str) -> List[Vote]:
    """Every vote created by ``alias``, in stored order."""
    return [v for v in decoded_records(votes, decode_vote) if v.creator == alias]


def alias_purchases(purchases: Channel, alias: str) -> List[Purchase]:
    """Every purchase created by ``alias``, in stored order."""
    return [p for p in decoded_records(purchases, decode_purchase) if p.creator == alias]


def list_canvases(canvases: Channel) -> List[Canvas]:
    """Every decodable canvas definition, in stored order."""
    return list(decoded_records(canvases, decode_canvas))


def find_canvas(canvases: Channel, record_hash: bytes) -> Optional[Canvas]:
    """
    Look up a canvas by the hash of its defining record.

    Returns None when no entry has that hash, or when the matching entry
    does not decode as a canvas.
    """
    entry = canvases.find(record_hash)
    if entry is None:
        logger.info("canvas not found", channel=canvases.name, canvas=record_hash.hex())
        return None
    report = ScanReport(channel=canvases.name)
    result = decode_canvas(entry)
    report.record(result)
    if isinstance(result, Decoded):
        return result.record
    return None


def sort_hashes(
    hashes: Sequence[bytes],
    timestamps: Mapping[bytes, int],
    chronologically: bool = True,
) -> List[bytes]:
    """Order record hashes by their timestamps; a missing timestamp counts as 0."""
    return sorted(
        hashes,
        key=lambda h: timestamps.get(h, 0),
        reverse=not chronologically,
    )
