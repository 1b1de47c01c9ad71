"""JSONL run log for deploy/clean runs."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class TelemetrySink:
    """Thin wrapper around JSONL telemetry.

    Event schema:
      {"timestamp": <float>, "run_id": <str>, "type": <str>, "data": <object>}

    Event types written by the driver:
      - phase_started: a deploy/clean run begins
      - unit_succeeded / unit_failed: one build unit finished
      - phase_completed: run ends with counts
    """

    enabled: bool
    path: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def log(self, run_id: str, event_type: str, data: dict[str, Any]) -> None:
        if not self.enabled:
            return

        entry = {
            "timestamp": time.time(),
            "run_id": run_id,
            "type": event_type,
            "data": data,
        }
        line = json.dumps(entry, ensure_ascii=False) + "\n"

        # Units may finish on worker threads.
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a") as f:
                    f.write(line)
            except OSError as e:
                # Best-effort; telemetry should never fail a deploy or clean.
                logger.warning("telemetry write to %s failed: %s", self.path, e)


def read_events(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    try:
        with open(path, encoding="utf-8") as f:
            for ln in f:
                ln = ln.strip()
                if not ln:
                    continue
                try:
                    events.append(json.loads(ln))
                except json.JSONDecodeError:
                    continue
    except OSError as e:
        logger.warning("could not read telemetry %s: %s", path, e)
    return events


def last_run(path: Path) -> dict[str, Any] | None:
    """Summary of the most recent completed phase, if any."""
    completed = [e for e in read_events(path) if e.get("type") == "phase_completed"]
    if not completed:
        return None
    last = completed[-1]
    return {"run_id": last.get("run_id"), "timestamp": last.get("timestamp"), **(last.get("data") or {})}
