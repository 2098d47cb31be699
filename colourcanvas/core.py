"""Core primitives for colourcanvas.

This module provides the small utilities used throughout the package:
- Cryptographic hashing (SHA-256)
- Canonical JSON serialization (JCS/RFC8785 subset)
- Base64url encoding of record hashes into canvas ids
- Path resolution for bundled JSON schemas

Design principles:
- Pure functions
- No global mutable state
"""

from __future__ import annotations

import base64
import hashlib
import json
import pathlib
from typing import Any

# Package root, computed once at module load
PACKAGE_ROOT = pathlib.Path(__file__).resolve().parent
SCHEMAS_DIR = PACKAGE_ROOT / "schemas"


def sha256_bytes(data: bytes) -> bytes:
    """Compute SHA-256 digest of bytes."""
    return hashlib.sha256(data).digest()


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON bytes (JCS/RFC8785 subset).

    Properties:
    - Keys sorted lexicographically
    - No whitespace
    - UTF-8 encoded
    - Floats rejected (prices and coordinates are integers)

    Record payloads are written with this so that two writers produce the
    same bytes, and therefore the same record hash, for the same record.
    """
    def _reject_floats(o: Any, path: str = "") -> None:
        if isinstance(o, float):
            raise ValueError(f"Float not allowed in canonical JSON at {path}")
        if isinstance(o, dict):
            for k, v in o.items():
                _reject_floats(v, f"{path}.{k}")
        if isinstance(o, list):
            for i, v in enumerate(o):
                _reject_floats(v, f"{path}[{i}]")

    _reject_floats(obj)
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def encode_base64url(data: bytes) -> str:
    """Encode bytes as base64url text (with padding)."""
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_base64url(text: str) -> bytes:
    """Decode base64url text, tolerating missing padding. Raises ValueError on bad input."""
    s = str(text or "").strip()
    s += "=" * (-len(s) % 4)
    return base64.b64decode(s.encode("ascii"), altchars=b"-_", validate=True)


def schema_path(name: str) -> pathlib.Path:
    """Return the path of a bundled schema, e.g. ``schema_path("vote")``."""
    return SCHEMAS_DIR / f"{name}.schema.json"
