"""Append-only JSONL audit trail of model calls and resolution commits."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List
import json
import logging
import threading

logger = logging.getLogger(__name__)


@dataclass
class AuditLog:
    path: Path

    def __post_init__(self) -> None:
        # Fan-out workers log from several threads at once.
        self._lock = threading.Lock()

    def log(self, event: str, data: Dict[str, Any] | None = None) -> None:
        payload = {
            "timestamp": datetime.now().astimezone().isoformat(timespec="seconds"),
            "event": event,
            "data": data or {},
        }
        line = json.dumps(payload, default=str) + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)

    def tail(self, limit: int = 20, event: str | None = None) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping corrupt audit line in {self.path}")
                continue
            if event and entry.get("event") != event:
                continue
            entries.append(entry)
        return entries[-limit:] if limit > 0 else entries
