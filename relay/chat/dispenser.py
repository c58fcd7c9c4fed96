"""
Chatter Dispenser

Drip-feeds pre-fetched chatter lines into the transcript on a fixed
period. Owned by a chat session; the session cancels it on logout.
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Iterable, Optional

from .models import ChatterLine, DispenserState

logger = logging.getLogger(__name__)


class ChatterDispenser:
    """
    FIFO queue of chatter lines drained by a background task.
    
    State machine: idle -> draining -> drained. stop() moves any state to
    stopped, after which ticks do nothing until the next load().
    """
    
    def __init__(
        self,
        deliver: Callable[[ChatterLine], None],
        interval: float = 6.0,
    ):
        """
        Args:
            deliver: Called with each popped line (appends it to the transcript)
            interval: Seconds between lines
        """
        self.deliver = deliver
        self.interval = interval
        
        self._queue: deque[ChatterLine] = deque()
        self._state = DispenserState.IDLE
        self._task: Optional[asyncio.Task] = None
    
    @property
    def state(self) -> DispenserState:
        return self._state
    
    @property
    def pending(self) -> int:
        """Number of lines still queued."""
        return len(self._queue)
    
    @property
    def is_running(self) -> bool:
        """Whether the tick task is alive."""
        return self._task is not None and not self._task.done()
    
    def load(self, lines: Iterable[ChatterLine]) -> None:
        """Replace the queue contents and return to idle."""
        self.stop()
        self._queue = deque(lines)
        self._state = DispenserState.IDLE
    
    def start(self) -> bool:
        """
        Start draining on the fixed period.
        
        Returns:
            True if the tick task was started, False if there is nothing
            to drain or it is already running
        """
        if self.is_running:
            logger.warning("Dispenser already running")
            return False
        
        if not self._queue:
            self._state = DispenserState.DRAINED
            return False
        
        self._state = DispenserState.DRAINING
        self._task = asyncio.create_task(self._tick_loop())
        logger.info(f"Dispenser started with {len(self._queue)} lines every {self.interval}s")
        return True
    
    def stop(self) -> None:
        """Cancel the tick task. Safe to call repeatedly."""
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        if self._state == DispenserState.DRAINING:
            self._state = DispenserState.STOPPED
    
    def clear(self) -> None:
        """Stop and drop all queued lines."""
        self.stop()
        self._queue.clear()
        self._state = DispenserState.IDLE
    
    def tick(self) -> bool:
        """
        Deliver the next line.
        
        Returns:
            True if a line was delivered, False once the queue is drained
            (or the dispenser was stopped)
        """
        if self._state != DispenserState.DRAINING:
            return False
        
        if not self._queue:
            self._state = DispenserState.DRAINED
            logger.info("Dispenser drained")
            return False
        
        line = self._queue.popleft()
        self.deliver(line)
        return True
    
    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.tick():
                break
