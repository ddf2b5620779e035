from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from quiklens.application.editor import Editor

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    id: str
    user_id: str
    editor: Editor
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    """Live editing sessions of this process, keyed by id and owned by one user each."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionEntry] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, user_id: str, editor: Editor) -> SessionEntry:
        entry = SessionEntry(id=f"ses_{uuid.uuid4().hex[:12]}", user_id=user_id, editor=editor)
        self._sessions[entry.id] = entry
        logger.info("Session %s opened for user %s", entry.id, user_id)
        return entry

    def get(self, session_id: str, user_id: str) -> SessionEntry | None:
        entry = self._sessions.get(session_id)
        if entry is None or entry.user_id != user_id:
            return None
        return entry

    def remove(self, session_id: str, user_id: str) -> SessionEntry | None:
        entry = self.get(session_id, user_id)
        if entry is not None:
            del self._sessions[session_id]
            logger.info("Session %s closed", session_id)
        return entry

    def close_all(self) -> None:
        for entry in self._sessions.values():
            entry.editor.close()
        self._sessions.clear()
