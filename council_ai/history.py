"""Conversation history store: append-only JSON file with atomic writes."""

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

from council_ai.models import Message

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: object) -> None:
    """Write JSON to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    os.chmod(tmp_path, 0o600)
    os.replace(tmp_path, path)


class HistoryStore:
    """Ordered message history. Every mutation is persisted before returning.

    A store without a path keeps history in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._messages: list[Message] = []

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> None:
        """Replace in-memory history with the file contents; missing or corrupt file -> empty."""
        self._messages = []
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._messages = [Message(**item) for item in raw]
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("History file %s unreadable, starting empty: %s", self._path, exc)
            self._messages = []

    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def last(self, n: int) -> list[Message]:
        return self._messages[-n:] if n > 0 else []

    def add(self, message: Message) -> None:
        self._messages.append(message)
        self._save()

    def compact(self, keep_count: int) -> int:
        """Keep only the ``keep_count`` most recent messages. Returns how many were removed."""
        if len(self._messages) <= keep_count:
            return 0
        removed = len(self._messages) - keep_count
        self._messages = self._messages[removed:]
        self._save()
        return removed

    def clear(self) -> None:
        self._messages = []
        self._save()

    def _save(self) -> None:
        if self._path is None:
            return
        write_json_atomic(self._path, [asdict(m) for m in self._messages])
