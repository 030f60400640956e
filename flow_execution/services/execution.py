"""
Execution Service - Application Orchestration Layer

This service is the entry point for all execution operations. It resolves
flow definitions through the repository, owns the live execution sessions
(one FlowExecutionDriver per open modal), and hands operations through to the
right driver.

Sessions live in process memory only. Nothing is persisted, so a session
does not survive a restart. The registry is bounded: when it is full, the
oldest finished session (EXITED or COMPLETED) is evicted first, otherwise the
oldest session.
"""

import logging
from typing import Dict, Optional

from ..config import settings
from ..execution.engine import FlowExecutionDriver
from ..execution.rendering import StepView
from ..execution.schemas.state_machine import TransitionMeta
from ..processor.interface import StepProcessor
from ..repositories.flow import FlowRepository
from .exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


class ExecutionService:
    def __init__(
        self,
        flow_repository: FlowRepository,
        processor: StepProcessor,
        max_sessions: int = settings.MAX_SESSIONS,
    ):
        self.flow_repo = flow_repository
        self.processor = processor
        self.max_sessions = max_sessions
        self._sessions: Dict[str, FlowExecutionDriver] = {}

    def start(self, button_id: str, user_id: Optional[str] = None) -> FlowExecutionDriver:
        """Opens a new session for a button. Raises FlowNotFoundError for unknown buttons."""
        flow = self.flow_repo.get_flow(button_id)
        driver = FlowExecutionDriver(
            flow=flow,
            processor=self.processor,
            user_id=user_id or settings.DEFAULT_USER_ID,
        )
        self._evict()
        self._sessions[driver.session_id] = driver
        logger.info(f"Started session {driver.session_id} for button {button_id}")
        return driver

    def _evict(self):
        # Dicts keep insertion order, so iteration runs oldest first.
        while self._sessions and len(self._sessions) >= self.max_sessions:
            victim = next(
                (sid for sid, d in self._sessions.items() if d.phase.is_terminal),
                next(iter(self._sessions)),
            )
            self._sessions.pop(victim).close()
            logger.info(f"Evicted session {victim}")

    def get(self, session_id: str) -> FlowExecutionDriver:
        driver = self._sessions.get(session_id)
        if driver is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return driver

    def close(self, session_id: str) -> bool:
        """Tears a session down. Returns False if it did not exist."""
        driver = self._sessions.pop(session_id, None)
        if driver is None:
            return False
        driver.close()
        return True

    def view(self, session_id: str) -> StepView:
        return self.get(session_id).view(maps_api_key=settings.GOOGLE_MAPS_API_KEY)

    async def submit(self, session_id: str) -> TransitionMeta:
        return await self.get(session_id).submit()

    async def answer_confirmation(self, session_id: str, answer: bool) -> TransitionMeta:
        return await self.get(session_id).answer_confirmation(answer)

    def back(self, session_id: str) -> TransitionMeta:
        return self.get(session_id).back()

    def reset(self, session_id: str) -> TransitionMeta:
        return self.get(session_id).reset()
