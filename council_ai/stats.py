"""Per-agent efficiency counters, persisted after every update."""

import json
import logging
from dataclasses import asdict
from pathlib import Path

from council_ai.history import write_json_atomic
from council_ai.models import AgentStats

logger = logging.getLogger(__name__)

VERDICTS = ("accepted", "partial", "rejected")


class StatsStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._stats: dict[str, AgentStats] = {}

    def load(self) -> None:
        self._stats = {}
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._stats = {agent_id: AgentStats(**counters) for agent_id, counters in raw.items()}
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Stats file %s unreadable, starting empty: %s", self._path, exc)
            self._stats = {}

    def get(self, agent_id: str) -> AgentStats:
        """Counters for an agent; zeroes when it has never been scored."""
        return self._stats.get(agent_id, AgentStats())

    def all(self) -> dict[str, AgentStats]:
        return dict(self._stats)

    def record(self, agent_id: str, verdict: str) -> AgentStats:
        if verdict not in VERDICTS:
            raise ValueError(f"Unknown verdict: {verdict!r}")
        stats = self._stats.setdefault(agent_id, AgentStats())
        stats.total += 1
        if verdict == "accepted":
            stats.accepted += 1
        elif verdict == "partial":
            stats.partial += 1
        else:
            stats.rejected += 1
        self._save()
        return stats

    def reset(self) -> None:
        self._stats = {}
        self._save()

    def global_efficiency(self) -> float:
        """Pooled efficiency over every verdict, weighted like ``AgentStats.efficiency``."""
        pooled = AgentStats(
            total=sum(s.total for s in self._stats.values()),
            accepted=sum(s.accepted for s in self._stats.values()),
            partial=sum(s.partial for s in self._stats.values()),
        )
        return pooled.efficiency

    def _save(self) -> None:
        if self._path is None:
            return
        write_json_atomic(self._path, {agent_id: asdict(s) for agent_id, s in self._stats.items()})
