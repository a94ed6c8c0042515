"""
Session Manager

Keeps the quiz sessions of this process and the proctor monitor attached to
each of them. Sessions live in memory until they are reset, or until they
have been completed for longer than completed_ttl_seconds.
"""
import logging
import time
from typing import Dict, Optional

from quiz_proctor.models.data_models import QuizSession, QuizStatus
from quiz_proctor.services.proctor import ProctorMonitor

logger = logging.getLogger(__name__)


class SessionManager:
    """In-memory registry of quiz sessions"""

    def __init__(self, completed_ttl_seconds: float = 3600.0, clock=time.time):
        self.completed_ttl_seconds = completed_ttl_seconds
        self.clock = clock
        self._sessions: Dict[str, QuizSession] = {}
        self._monitors: Dict[str, ProctorMonitor] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add_session(self, session: QuizSession, monitor: Optional[ProctorMonitor] = None) -> QuizSession:
        self.prune_completed()
        self._sessions[session.session_id] = session
        if monitor is not None:
            self._monitors[session.session_id] = monitor
        logger.info(f"Session {session.session_id} registered for {session.username}")
        return session

    def get_session(self, session_id: str) -> Optional[QuizSession]:
        return self._sessions.get(session_id)

    def get_monitor(self, session_id: str) -> Optional[ProctorMonitor]:
        return self._monitors.get(session_id)

    def set_monitor(self, session_id: str, monitor: ProctorMonitor) -> None:
        if session_id not in self._sessions:
            raise KeyError(session_id)
        self._monitors[session_id] = monitor

    def prune_completed(self) -> int:
        """
        Drop sessions completed more than completed_ttl_seconds ago. Their
        monitors were flushed when the quiz finished.

        Returns:
            int: Number of sessions dropped
        """
        cutoff = self.clock() - self.completed_ttl_seconds
        expired = [
            session_id for session_id, session in self._sessions.items()
            if session.status == QuizStatus.COMPLETED
            and session.finished_at is not None
            and session.finished_at <= cutoff
        ]
        for session_id in expired:
            del self._sessions[session_id]
            self._monitors.pop(session_id, None)
        if expired:
            logger.info(f"Evicted {len(expired)} completed sessions")
        return len(expired)

    async def end_proctoring(self, session_id: str) -> None:
        """Stop the session's monitor and submit its partial batch"""
        monitor = self._monitors.get(session_id)
        if monitor is not None:
            await monitor.finish()

    async def remove_session(self, session_id: str) -> bool:
        """
        Drop a session, flushing its monitor first.

        Returns:
            bool: False if the session did not exist
        """
        if session_id not in self._sessions:
            return False
        await self.end_proctoring(session_id)
        self._monitors.pop(session_id, None)
        del self._sessions[session_id]
        logger.info(f"Session {session_id} removed")
        return True
