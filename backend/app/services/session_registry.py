"""
StudySense Live Session Registry
Keeps one engine StudySession per live study session and makes sure their
timers are torn down when a session ends.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from study_engine import EngineConfig, StudySession

from app.core.config import settings

logger = logging.getLogger("studysense.registry")


class SessionRegistry:
    """In-process registry of live engine sessions"""

    def __init__(self, config: Optional[EngineConfig] = None, clock=None):
        self.config = config or settings.engine_config()
        self.clock = clock
        self._sessions: Dict[str, StudySession] = {}

    def start(self) -> StudySession:
        session = StudySession(config=self.config, clock=self.clock)
        self._sessions[session.session_id] = session
        logger.info("Live session %s registered (active: %d)", session.session_id, len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[StudySession]:
        return self._sessions.get(session_id)

    def end(self, session_id: str) -> Optional[StudySession]:
        """Close and forget a session; returns it so callers can persist its analytics."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.close()
        return session

    def tick_all(self) -> int:
        """Run due timers on every live session; returns how many fired."""
        return sum(s.tick() for s in list(self._sessions.values()))

    @property
    def active_ids(self) -> List[str]:
        return list(self._sessions)

    def shutdown(self):
        for session_id in list(self._sessions):
            self.end(session_id)


# Global registry instance
_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    """Get or create the live session registry"""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_registry(config: Optional[EngineConfig] = None, clock=None) -> SessionRegistry:
    """Replace the registry (shuts down any sessions still running)"""
    global _registry
    if _registry is not None:
        _registry.shutdown()
    _registry = SessionRegistry(config=config, clock=clock)
    return _registry


async def tick_loop(interval: float):
    """
    Drive every live session's timers on a fixed cadence so duration,
    smoothing and alert rules advance even when no request arrives.
    Runs until cancelled.
    """
    logger.info("Session tick loop started (every %.1fs)", interval)
    try:
        while True:
            try:
                get_registry().tick_all()
            except Exception as e:
                logger.error("Session tick failed: %s", e, exc_info=True)
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("Session tick loop stopped")
        raise
