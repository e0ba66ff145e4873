"""
Connectivity Monitor

Tracks the advisory online/offline signal. An offline -> online transition
flushes the retry queue immediately; the periodic flush works without it.
"""

from datetime import datetime
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel

from ...core.scheduler import Clock, SystemClock
from ..interfaces import RetryQueueInterface
from .mutations import FlushReport

logger = structlog.get_logger(__name__)


class ConnectivityStatus(BaseModel):
    """Last observed connectivity."""

    is_online: bool
    last_checked_at: Optional[datetime] = None
    last_online_at: Optional[datetime] = None
    last_offline_at: Optional[datetime] = None


StatusListener = Callable[[ConnectivityStatus], None]


class ConnectivityMonitor:
    """Records connectivity transitions and reacts to reconnects."""

    def __init__(
        self,
        retry_queue: RetryQueueInterface,
        clock: Optional[Clock] = None,
        initially_online: bool = True,
    ):
        self.retry_queue = retry_queue
        self.clock = clock or SystemClock()
        self._status = ConnectivityStatus(is_online=initially_online)
        self._listeners: List[StatusListener] = []

    @property
    def is_online(self) -> bool:
        return self._status.is_online

    def status(self) -> ConnectivityStatus:
        return self._status.model_copy()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_online(self, online: bool) -> Optional[FlushReport]:
        """
        Record the current connectivity.

        Returns:
            The flush report when this call observed a reconnect, else None
        """
        now = self.clock.now()
        was_online = self._status.is_online
        self._status.is_online = online
        self._status.last_checked_at = now
        if online:
            self._status.last_online_at = now
        else:
            self._status.last_offline_at = now

        if was_online != online:
            logger.info("Connectivity changed", online=online)
            for listener in list(self._listeners):
                try:
                    listener(self.status())
                except Exception as e:
                    logger.error("Connectivity listener failed", error=str(e), exc_info=True)

        if online and not was_online:
            return await self.retry_queue.flush()
        return None
