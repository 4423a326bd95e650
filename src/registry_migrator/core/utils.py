from __future__ import annotations

import json
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    return int(time.time() * 1000)


def format_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_to_rfc3339(timestamp_sec: int) -> str:
    return format_rfc3339(datetime.fromtimestamp(timestamp_sec, tz=timezone.utc))


def rfc3339_to_timestamp(value: str) -> int:
    return int(parse_rfc3339(value).timestamp())


def atomic_write_text(path: Path, text: str, *, mtime_sec: Optional[float] = None) -> None:
    """
    Replace `path` with `text` in one step.

    Each call writes its own sibling temp file, so concurrent writers of the same
    path never share one and the last replace wins. `mtime_sec` is stamped on the
    temp file before the replace.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_file.write(text)
    tmp_path = Path(tmp_file.name)
    try:
        if mtime_sec is not None:
            os.utime(tmp_path, (mtime_sec, mtime_sec))
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def dump_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def atomic_write_json(path: Path, payload: Any, *, mtime_sec: Optional[float] = None) -> None:
    atomic_write_text(path, dump_json(payload), mtime_sec=mtime_sec)
