"""
Canvas Log Channels

A channel is a named, append-only, hash-linked log of entries. Replication,
signing and storage of real logs belong to the surrounding application; the
engine only needs to iterate a channel's entries in a given order and stop
early when the callback says so.

    ┌──────────────────────────────────────────────────────────────┐
    │  Channel (abstract)                                          │
    │    iterate(callback, order)   callback(entry) -> continue    │
    │    entries(order)             generator view of iterate      │
    │    find(record_hash)          first entry with that hash     │
    ├──────────────────────────────────────────────────────────────┤
    │  MemoryChannel   in-process log, hash-links on append        │
    │  FileChannel     read-only view of a <name>.jsonl file       │
    └──────────────────────────────────────────────────────────────┘

Hash linking
────────────

    record_hash = SHA256(canonical_json({
        "creator": ..., "payload": base64url(payload),
        "previous": hex(previous_hash), "timestamp": ...
    }))

The first entry of a log links to the empty hash.

Channel names
─────────────

    Colour-Canvases                 every canvas definition
    Colour-Vote-<canvas_id>         votes for one canvas
    Colour-Purchase-<canvas_id>     purchases for one canvas

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from colourcanvas.core import canonical_json_bytes, decode_base64url, encode_base64url, sha256_bytes
from colourcanvas.observability import Layer, get_logger

logger = get_logger("channel", Layer.CHANNEL)

CANVASES_CHANNEL = "Colour-Canvases"
VOTE_PREFIX = "Colour-Vote-"
PURCHASE_PREFIX = "Colour-Purchase-"


def votes_channel_name(canvas_id: str, prefix: str = VOTE_PREFIX) -> str:
    return prefix + canvas_id


def purchases_channel_name(canvas_id: str, prefix: str = PURCHASE_PREFIX) -> str:
    return prefix + canvas_id


# ════════════════════════════════════════════════════════════════════════════
# ERRORS
# ════════════════════════════════════════════════════════════════════════════


class ChannelError(Exception):
    """Base class for channel failures."""
    pass


class ChannelUnavailable(ChannelError):
    """The underlying log could not be read."""

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"channel {channel} unavailable: {reason}")


# ════════════════════════════════════════════════════════════════════════════
# ENTRIES
# ════════════════════════════════════════════════════════════════════════════


class Order(Enum):
    """Iteration order of a channel."""
    STORED = "stored"
    NEWEST_FIRST = "newest_first"


@dataclass(frozen=True)
class LogEntry:
    """One immutable entry of a channel."""
    record_hash: bytes
    creator: str
    payload: bytes
    timestamp: int = 0
    previous_hash: bytes = b""

    @property
    def hash_hex(self) -> str:
        return self.record_hash.hex()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_hash": self.record_hash.hex(),
            "previous_hash": self.previous_hash.hex(),
            "creator": self.creator,
            "timestamp": self.timestamp,
            "payload": encode_base64url(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            record_hash=bytes.fromhex(str(data["record_hash"])),
            creator=str(data["creator"]),
            payload=decode_base64url(str(data["payload"])),
            timestamp=int(data.get("timestamp", 0)),
            previous_hash=bytes.fromhex(str(data.get("previous_hash", ""))),
        )


def link_hash(previous_hash: bytes, creator: str, timestamp: int, payload: bytes) -> bytes:
    """Compute the hash of an entry from its content and predecessor."""
    return sha256_bytes(canonical_json_bytes({
        "creator": creator,
        "payload": encode_base64url(payload),
        "previous": previous_hash.hex(),
        "timestamp": timestamp,
    }))


EntryCallback = Callable[[LogEntry], bool]


# ════════════════════════════════════════════════════════════════════════════
# CHANNEL
# ════════════════════════════════════════════════════════════════════════════


class Channel(ABC):
    """
    Read capability over one named log.

    Subclasses provide ``_scan``; everything else is built on it.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def _scan(self, order: Order) -> Iterator[LogEntry]:
        """Yield entries in the requested order. May raise ChannelUnavailable."""

    def iterate(self, callback: EntryCallback, order: Order = Order.STORED) -> int:
        """
        Feed entries to ``callback`` until it returns a falsy value.

        No further entries are read once the callback asks to stop.
        Returns the number of entries delivered.
        """
        delivered = 0
        scan = self._scan(order)
        try:
            for entry in scan:
                delivered += 1
                if not callback(entry):
                    break
        finally:
            close = getattr(scan, "close", None)
            if close is not None:
                close()
        return delivered

    def entries(self, order: Order = Order.STORED) -> Iterator[LogEntry]:
        """Generator view of the channel; abandoning it stops the scan."""
        return self._scan(order)

    def find(self, record_hash: bytes) -> Optional[LogEntry]:
        """Return the first entry whose hash equals ``record_hash``."""
        found: List[LogEntry] = []

        def _match(entry: LogEntry) -> bool:
            if entry.record_hash == record_hash:
                found.append(entry)
                return False
            return True

        self.iterate(_match)
        return found[0] if found else None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class MemoryChannel(Channel):
    """
    In-process channel.

    Appends are serialized by a lock and hash-linked to the previous entry.
    A scan works over a snapshot taken when it starts.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()

    def append(self, creator: str, payload: bytes, timestamp: Optional[int] = None) -> LogEntry:
        """Append a payload and return the new, hash-linked entry."""
        if timestamp is None:
            timestamp = time.time_ns()
        with self._lock:
            previous = self._entries[-1].record_hash if self._entries else b""
            entry = LogEntry(
                record_hash=link_hash(previous, creator, timestamp, payload),
                creator=creator,
                payload=payload,
                timestamp=timestamp,
                previous_hash=previous,
            )
            self._entries.append(entry)
        logger.debug("entry appended", channel=self.name, entry=entry.hash_hex)
        return entry

    def _scan(self, order: Order) -> Iterator[LogEntry]:
        with self._lock:
            snapshot = list(self._entries)
        if order is Order.NEWEST_FIRST:
            snapshot.reverse()
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def verify(self) -> List[str]:
        """
        Check the hash links of the whole log.

        Returns: list of errors (empty if every entry links to its predecessor)
        """
        errors: List[str] = []
        previous = b""
        for i, entry in enumerate(self._scan(Order.STORED)):
            if entry.previous_hash != previous:
                errors.append(f"entry {i}: previous hash does not match entry {i - 1}")
            expected = link_hash(entry.previous_hash, entry.creator, entry.timestamp, entry.payload)
            if expected != entry.record_hash:
                errors.append(f"entry {i}: record hash does not match content")
            previous = entry.record_hash
        return errors

    def write_jsonl(self, path: Union[str, Path]) -> Path:
        """Write the log in the format read by FileChannel."""
        path = Path(path)
        lines = [json.dumps(e.to_dict(), sort_keys=True) for e in self._scan(Order.STORED)]
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return path


class FileChannel(Channel):
    """
    Read-only channel over a JSON Lines file, one entry per line, oldest first.

    A missing file is an empty log. Any other read failure, or a line that
    is not an entry, raises ChannelUnavailable.
    """

    def __init__(self, name: str, path: Union[str, Path]):
        super().__init__(name)
        self.path = Path(path)

    def _parse(self, lineno: int, line: str) -> LogEntry:
        try:
            return LogEntry.from_dict(json.loads(line))
        except (ValueError, KeyError, TypeError) as e:
            raise ChannelUnavailable(self.name, f"{self.path}:{lineno}: corrupt entry: {e}") from e

    def _scan(self, order: Order) -> Iterator[LogEntry]:
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                if order is Order.NEWEST_FIRST:
                    lines = list(enumerate(f, start=1))
                    lines.reverse()
                    for lineno, line in lines:
                        if line.strip():
                            yield self._parse(lineno, line)
                else:
                    for lineno, line in enumerate(f, start=1):
                        if line.strip():
                            yield self._parse(lineno, line)
        except (OSError, UnicodeDecodeError) as e:
            raise ChannelUnavailable(self.name, str(e)) from e


# ════════════════════════════════════════════════════════════════════════════
# CHANNEL FACTORIES
# ════════════════════════════════════════════════════════════════════════════


class ChannelFactory(ABC):
    """Opens the canvases log and the per-canvas votes and purchases logs."""

    def __init__(
        self,
        canvases_name: str = CANVASES_CHANNEL,
        vote_prefix: str = VOTE_PREFIX,
        purchase_prefix: str = PURCHASE_PREFIX,
    ):
        self.canvases_name = canvases_name
        self.vote_prefix = vote_prefix
        self.purchase_prefix = purchase_prefix

    @abstractmethod
    def open(self, name: str) -> Channel:
        """Open a channel by name."""

    def canvases(self) -> Channel:
        return self.open(self.canvases_name)

    def votes(self, canvas_id: str) -> Channel:
        return self.open(votes_channel_name(canvas_id, self.vote_prefix))

    def purchases(self, canvas_id: str) -> Channel:
        return self.open(purchases_channel_name(canvas_id, self.purchase_prefix))


class MemoryChannelFactory(ChannelFactory):
    """Creates MemoryChannels on first use and hands out the same one afterwards."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self._channels: Dict[str, MemoryChannel] = {}
        self._lock = threading.Lock()

    def open(self, name: str) -> MemoryChannel:
        with self._lock:
            channel = self._channels.get(name)
            if channel is None:
                channel = MemoryChannel(name)
                self._channels[name] = channel
            return channel

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._channels)

    def write_directory(self, directory: Union[str, Path]) -> Path:
        """Dump every channel to ``<directory>/<name>.jsonl``."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        for name in self.names():
            self.open(name).write_jsonl(directory / f"{name}.jsonl")
        return directory


class DirectoryChannelFactory(ChannelFactory):
    """Opens ``<directory>/<name>.jsonl`` files as FileChannels."""

    def __init__(self, directory: Union[str, Path], **kwargs: Any):
        super().__init__(**kwargs)
        self.directory = Path(directory)

    def open(self, name: str) -> FileChannel:
        return FileChannel(name, self.directory / f"{name}.jsonl")

    @classmethod
    def from_config(cls, directory: Optional[Union[str, Path]] = None) -> "DirectoryChannelFactory":
        from colourcanvas.config import get_config

        cfg = get_config().channel
        return cls(
            directory if directory is not None else cfg.logs_dir.get(),
            canvases_name=cfg.canvases_channel.get(),
            vote_prefix=cfg.vote_prefix.get(),
            purchase_prefix=cfg.purchase_prefix.get(),
        )
