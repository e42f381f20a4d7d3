"""
Run Ledger — Append-only NDJSON record of mirror runs.

Each line is one JSON object (newline-delimited JSON). Lines are only
ever appended, so a ledger shared by many runs reads as their history.

## Usage

    ledger = RunLedger(Path("ledger/runs.ndjson"))
    ledger.emit("run_start", run_id="R-20240601T120000-1A2B3C")
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4


class RunLedger:
    """Append-only NDJSON ledger writer."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def emit(
        self,
        event_type: str,
        run_id: str,
        level: str = "info",
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Append one event.

        Args:
            event_type: run_start, closure_computed, references_pruned, run_end
            run_id: Identifier of the mirror run
            level: info, warning or error
            details: Event payload

        Returns:
            Generated event_id
        """
        event_id = f"E-{uuid4().hex[:8].upper()}"
        entry: Dict[str, Any] = {
            "ts_iso": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "event_id": event_id,
            "run_id": run_id,
            "level": level,
            "type": event_type,
        }
        if details is not None:
            entry["details"] = details

        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
        return event_id

    def emit_run_start(
        self,
        run_id: str,
        sources: List[str],
        destination: str,
        seeds: List[str],
        dry_run: bool,
    ) -> str:
        return self.emit(
            "run_start",
            run_id,
            details={
                "sources": sources,
                "destination": destination,
                "seeds": seeds,
                "dry_run": dry_run,
            },
        )

    def emit_closure_computed(
        self,
        run_id: str,
        roots: int,
        components: int,
        sources_added: int,
        unresolved: List[str],
    ) -> str:
        return self.emit(
            "closure_computed",
            run_id,
            level="warning" if unresolved else "info",
            details={
                "roots": roots,
                "components": components,
                "sources_added": sources_added,
                "unresolved": unresolved,
            },
        )

    def emit_references_pruned(self, run_id: str, locations: List[str]) -> str:
        return self.emit("references_pruned", run_id, details={"locations": locations})

    def emit_run_end(
        self,
        run_id: str,
        status: str,
        duration_ms: int,
        components: int,
        artifacts: int,
        error: Optional[str] = None,
    ) -> str:
        details: Dict[str, Any] = {
            "status": status,
            "duration_ms": duration_ms,
            "components": components,
            "artifacts": artifacts,
        }
        if error is not None:
            details["error"] = error
        return self.emit(
            "run_end",
            run_id,
            level="error" if status == "failed" else "info",
            details=details,
        )

    def read_events(self) -> List[Dict[str, Any]]:
        """All events, oldest first."""
        with self.path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
