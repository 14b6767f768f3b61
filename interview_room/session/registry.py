from __future__ import annotations

import time
from threading import Lock
from typing import Optional


class SessionRegistry:
    """
    Process-wide index of interview sessions by id.
    Ended sessions stay readable (final score, end reason) until cleanup.
    """

    def __init__(self, clock=time.time):
        self._lock = Lock()
        self._clock = clock
        self._sessions: dict[str, dict] = {}

    def register(self, session_id: str, interview_session) -> None:
        now = self._clock()
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing and existing.get("active"):
                raise ValueError(f"Session {session_id} is already active")
            self._sessions[session_id] = {
                "interview_session": interview_session,
                "created_at": now,
                "updated_at": now,
                "active": True,
                "ended_reason": None,
                "message_count": 0,
            }

    def touch(self, session_id: str) -> None:
        with self._lock:
            data = self._sessions.get(session_id)
            if data is not None:
                data["updated_at"] = self._clock()
                data["message_count"] += 1

    def mark_inactive(self, session_id: str, reason: Optional[str] = None) -> bool:
        with self._lock:
            data = self._sessions.get(session_id)
            if data is None or not data["active"]:
                return False
            data["active"] = False
            data["ended_reason"] = reason
            data["updated_at"] = self._clock()
            return True

    def get(self, session_id: str) -> dict | None:
        with self._lock:
            item = self._sessions.get(session_id)
            return dict(item) if item else None

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for data in self._sessions.values() if data["active"])

    def summaries(self) -> list[dict]:
        with self._lock:
            items = [(session_id, dict(data)) for session_id, data in self._sessions.items()]

        result = []
        for session_id, data in sorted(items, key=lambda pair: pair[1]["created_at"]):
            state = getattr(data["interview_session"], "state", None)
            result.append({
                "session_id": session_id,
                "active": data["active"],
                "ended_reason": data["ended_reason"],
                "message_count": data["message_count"],
                "created_at": data["created_at"],
                "updated_at": data["updated_at"],
                "machine_state": state.machine_state.value if state is not None else None,
                "turn_count": len(state.turns) if state is not None else 0,
            })
        return result

    def cleanup_inactive(self, ttl_sec: float) -> int:
        # ended sessions are kept at least 30s so clients can fetch the final score
        cutoff = self._clock() - max(30.0, float(ttl_sec or 900.0))
        with self._lock:
            expired = [
                session_id
                for session_id, data in self._sessions.items()
                if not data["active"] and data["updated_at"] <= cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]
        return len(expired)


session_registry = SessionRegistry()
