"""Routing log - one JSON line per routing decision."""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .router.models import RoutingDecision

# Default log directory
LOG_DIR = Path("logs")


@dataclass
class RoutingLogEntry:
    """A single routing log entry."""
    timestamp: str
    recipient: str
    client_hostname: Optional[str]
    client_ip: Optional[str]
    mailbox: Optional[str]
    matched: bool
    header_count: int = 0


class RoutingLogger:
    """Logger for routing decisions."""

    def __init__(self, log_dir: str = None, session_id: str = None):
        self.log_dir = Path(log_dir) if log_dir else LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # Session-based log file (created once when logger starts)
        self.session_id = session_id or datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        self.log_file = self.log_dir / f"routing_log_{self.session_id}.jsonl"

    def log_decision(self, decision: RoutingDecision, header_count: int = 0) -> RoutingLogEntry:
        """Append a routing decision to the session log."""
        entry = RoutingLogEntry(
            timestamp=datetime.now().isoformat(),
            recipient=decision.recipient,
            client_hostname=decision.client_hostname,
            client_ip=decision.client_ip,
            mailbox=decision.mailbox_name,
            matched=decision.matched,
            header_count=header_count,
        )

        with open(self.log_file, "a") as f:
            f.write(json.dumps(asdict(entry)) + "\n")

        return entry

    def list_sessions(self) -> list[dict]:
        """List all available log sessions, newest first."""
        sessions = []
        for f in sorted(self.log_dir.glob("routing_log_*.jsonl"), reverse=True):
            stat = f.stat()
            sessions.append({
                "session_id": f.stem.replace("routing_log_", ""),
                "file": str(f),
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            })
        return sessions

    def get_logs(self, session_id: str = None, limit: int = 100) -> list[dict]:
        """Get log entries for a specific session (or current session)."""
        if session_id is None:
            log_file = self.log_file
        else:
            log_file = self.log_dir / f"routing_log_{session_id}.jsonl"

        if not log_file.exists():
            return []

        entries = []
        with open(log_file) as f:
            for line in f:
                if line.strip():
                    entries.append(json.loads(line))

        return entries[-limit:] if limit else entries

    def get_stats(self, session_id: str = None) -> dict:
        """Summarize routing decisions for a session."""
        logs = self.get_logs(session_id, limit=0)

        stats = {
            "total": len(logs),
            "matched": 0,
            "unmatched": 0,
            "by_mailbox": {},
        }

        for log in logs:
            mailbox = log.get("mailbox")
            if log.get("matched") and mailbox:
                stats["matched"] += 1
                stats["by_mailbox"][mailbox] = stats["by_mailbox"].get(mailbox, 0) + 1
            else:
                stats["unmatched"] += 1

        return stats
