"""Shared repository helpers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


def utc_now() -> str:
    """Current UTC time as ISO 8601 (record timestamps)."""
    return datetime.now(UTC).isoformat()


def dump_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def load_json(raw: str | None) -> Any:
    return json.loads(raw) if raw is not None else None
