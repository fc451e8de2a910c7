from __future__ import annotations

import hashlib
import json
from typing import Any


def stable_json(payload: Any) -> str:
    """Canonical JSON text: sorted keys, no whitespace, non-ASCII kept as UTF-8."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(payload: Any) -> str:
    """SHA-256 hex of `stable_json(payload)`. Used only to detect payload changes."""
    return hashlib.sha256(stable_json(payload).encode("utf-8")).hexdigest()
