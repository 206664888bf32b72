"""
Run bookkeeping helpers: canonical hashing of run inputs, JSON conversion of
result objects, and the per-run output directory with its report/manifest files.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import hashlib
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

RUN_DIR_FORMAT = "%Y%m%dT%H%M%S"


def normalize_abs_posix(path: str | Path) -> str:
    """Resolved absolute path with forward slashes, so run hashes match across platforms."""
    return Path(path).resolve().as_posix()


def canonical_json_dumps(payload: dict[str, Any]) -> str:
    # Sorted keys and no whitespace: equal payloads give equal bytes
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonical_json_hash(payload: dict[str, Any]) -> tuple[str, str]:
    """
    SHA-256 over the canonical JSON form of payload.

    Returns (first 8 hex chars, full hex digest). The short form names run
    artifacts; the full form is stored in the manifest.
    """
    digest = hashlib.sha256(canonical_json_dumps(payload).encode("utf-8")).hexdigest()
    return digest[:8], digest


def to_jsonable(obj: Any) -> Any:
    """
    Convert parameter and result objects to plain JSON values.

    Dataclasses become dicts of their fields, enums their member name, paths
    an absolute POSIX string, numpy scalars/arrays Python numbers/lists.
    NaN and infinities become None since JSON cannot carry them. Anything
    else unknown falls back to its attributes or str().
    """
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, float):
        return obj if np.isfinite(obj) else None
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, Path):
        return normalize_abs_posix(obj)
    if isinstance(obj, (np.generic, np.ndarray)):
        return to_jsonable(obj.tolist())
    if isinstance(obj, _dt.datetime):
        return obj.isoformat()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_jsonable(x) for x in obj]
    if hasattr(obj, "__dict__"):
        return to_jsonable(vars(obj))
    return str(obj)


def build_effective_parameters(load: Any, breaks: Any) -> dict[str, Any]:
    """{"load": ..., "breaks": ...} view of the LoadParams/BreakParams actually used."""
    return {"load": to_jsonable(load), "breaks": to_jsonable(breaks)}


def utc_timestamp_seconds() -> str:
    """Current UTC time as ISO-8601 with second precision and a Z suffix."""
    return _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ensure_run_dir(output_dir: Path | str, subdir: str = "runs") -> Path:
    """
    Create and return output_dir/subdir/<local timestamp>.

    A second run within the same second gets a numeric suffix instead of
    sharing the directory.
    """
    parent = Path(output_dir) / subdir
    stamp = _dt.datetime.now().strftime(RUN_DIR_FORMAT)
    run_dir = parent / stamp
    n = 1
    while run_dir.exists():
        run_dir = parent / f"{stamp}-{n}"
        n += 1
    run_dir.mkdir(parents=True)
    logger.debug("Created run directory %s", run_dir)
    return run_dir


def write_report(run_dir: Path, short_hash: str, text: str) -> Path:
    """Write run_dir/report-<short_hash>.txt and return its path."""
    path = Path(run_dir) / f"report-{short_hash}.txt"
    path.write_text(text, encoding="utf-8")
    logger.debug("Wrote report %s", path)
    return path


def write_json(path: str | Path, payload: dict[str, Any]) -> Path:
    """Write payload as indented UTF-8 JSON (used for run manifests)."""
    path = Path(path)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("Wrote %s", path)
    return path
