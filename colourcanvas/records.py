"""Record decoding for canvas, vote and purchase payloads.

Payloads are canonical JSON objects validated against the bundled JSON
Schemas (``colourcanvas/schemas``). Decoding never raises for bad input:
every decoder returns either ``Decoded`` (the typed record plus the entry it
came from) or ``DecodeFailure`` (the entry hash and a reason). Scans treat a
failure as an absent entry, so one malformed or hostile entry cannot stop
the rest of a log from being read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Generic, TypeVar, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from colourcanvas.channel import LogEntry
from colourcanvas.core import SCHEMAS_DIR, canonical_json_bytes, load_json, schema_path
from colourcanvas.model import Canvas, Colour, Location, Mode, Purchase, Vote

R = TypeVar("R")


@dataclass(frozen=True)
class Decoded(Generic[R]):
    """A successfully decoded record."""
    entry: LogEntry
    record: R

    ok = True


@dataclass(frozen=True)
class DecodeFailure:
    """A payload that could not be decoded."""
    entry_hash: str
    creator: str
    reason: str

    ok = False

    def to_dict(self) -> Dict[str, str]:
        return {"entry_hash": self.entry_hash, "creator": self.creator, "reason": self.reason}


DecodeResult = Union[Decoded[R], DecodeFailure]
Decoder = Callable[[LogEntry], "DecodeResult[R]"]


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    """Registry of the bundled schemas, so ``$ref`` across files resolves."""
    resources = []
    for p in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        schema = load_json(p)
        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        resources.append((schema["$id"], resource))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(kind: str) -> Draft202012Validator:
    """Cached validator for one record kind (``canvas``, ``vote``, ``purchase``)."""
    return Draft202012Validator(load_json(schema_path(kind)), registry=_schema_registry())


def _load_payload(entry: LogEntry, kind: str) -> Dict[str, Any]:
    try:
        obj = json.loads(entry.payload.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise ValueError(f"payload is not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"payload is not JSON: {e.msg}") from e
    except RecursionError:
        raise ValueError("payload is nested too deeply") from None

    err = best_match(schema_validator(kind).iter_errors(obj))
    if err is not None:
        raise ValueError(f"invalid {kind}: {err.json_path}: {err.message}")
    return obj


def _decode(entry: LogEntry, kind: str, build: Callable[[Dict[str, Any]], R]) -> "DecodeResult[R]":
    try:
        return Decoded(entry=entry, record=build(_load_payload(entry, kind)))
    except (ValueError, TypeError, KeyError) as e:
        return DecodeFailure(entry_hash=entry.hash_hex, creator=entry.creator, reason=str(e))


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def decode_vote(entry: LogEntry) -> "DecodeResult[Vote]":
    return _decode(entry, "vote", lambda obj: Vote(
        creator=entry.creator,
        location=Location.from_dict(obj["location"]),
        colour=Colour.from_dict(obj["colour"]),
    ))


def decode_purchase(entry: LogEntry) -> "DecodeResult[Purchase]":
    return _decode(entry, "purchase", lambda obj: Purchase(
        creator=entry.creator,
        location=Location.from_dict(obj["location"]),
        colour=Colour.from_dict(obj["colour"]),
        price=int(obj["price"]),
    ))


def decode_canvas(entry: LogEntry) -> "DecodeResult[Canvas]":
    """Decode a canvas definition; the entry's hash becomes the canvas identity."""
    return _decode(entry, "canvas", lambda obj: Canvas(
        record_hash=entry.record_hash,
        name=str(obj.get("name", "")),
        width=int(obj["width"]),
        height=int(obj["height"]),
        depth=int(obj["depth"]),
        mode=Mode.parse(obj["mode"]),
    ))


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def encode_vote(location: Location, colour: Colour) -> bytes:
    return canonical_json_bytes({"location": location.to_dict(), "colour": colour.to_dict()})


def encode_purchase(location: Location, colour: Colour, price: int) -> bytes:
    if price < 0:
        raise ValueError("price must be >= 0")
    return canonical_json_bytes({
        "location": location.to_dict(),
        "colour": colour.to_dict(),
        "price": int(price),
    })


def encode_canvas(name: str, width: int, height: int, depth: int, mode: Mode) -> bytes:
    return canonical_json_bytes({
        "name": name,
        "width": width,
        "height": height,
        "depth": depth,
        "mode": mode.name,
    })
