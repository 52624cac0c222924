# relaychat_web/client/typewriter.py
"""
Typewriter reveal of an assistant message that has already fully arrived.

The reveal runs as one asyncio task ticking every `interval_s` seconds. The
engine owns that task: starting a new reveal cancels the previous task before
touching the shared `ChatState`, so two reveals never race.
"""
import asyncio
import logging
from typing import Optional

from .state import ChatState

logger = logging.getLogger("relaychat_web.client.typewriter")

TYPING_INTERVAL_S = 0.02
CHARS_PER_TICK = 2


class TypewriterReveal:
    """
    Reveals `chars_per_tick` characters of the streaming message per tick.

    `start()` and `extend()` schedule the timer task and therefore must be
    called while an event loop is running. `tick()` is synchronous.
    """

    def __init__(self, state: ChatState, interval_s: float = TYPING_INTERVAL_S, chars_per_tick: int = CHARS_PER_TICK):
        if chars_per_tick < 1:
            raise ValueError("chars_per_tick must be at least 1")
        self.state = state
        self.interval_s = interval_s
        self.chars_per_tick = chars_per_tick
        self._message_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def timer(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def revealable_length(self) -> int:
        message = self.state.find(self._message_id)
        if message is None:
            return 0
        return max(0, len(message.content) - self.state.prefix_length)

    def start(self, message_id: str, prefix_length: int = 0) -> None:
        """Begins revealing a new message from zero, replacing any reveal in progress."""
        self.cancel()
        self._message_id = message_id
        self.state.streaming_message_id = message_id
        self.state.prefix_length = prefix_length
        self.state.visible_length = 0
        if self.revealable_length() == 0:
            self._finish()
            return
        self._schedule()

    def extend(self, message_id: str) -> None:
        """Keeps revealing `message_id` after its content grew, without resetting progress."""
        if message_id != self._message_id:
            self.start(message_id)
            return
        self.state.streaming_message_id = message_id
        if self.state.visible_length >= self.revealable_length():
            self._finish()
        elif not self.active:
            self._schedule()

    def tick(self) -> bool:
        """Advances the reveal by one batch. Returns True once the reveal is finished."""
        if self._message_id is None or self.state.streaming_message_id != self._message_id:
            return True
        limit = self.revealable_length()
        self.state.visible_length = min(self.state.visible_length + self.chars_per_tick, limit)
        if self.state.visible_length >= limit:
            self._finish()
            return True
        return False

    def cancel(self) -> None:
        """Stops the timer. Message content and reveal progress are left as they are."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def wait(self) -> None:
        """Waits until the current reveal finishes or is cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def _schedule(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _finish(self) -> None:
        if self.state.streaming_message_id == self._message_id:
            self.state.streaming_message_id = None
        self.cancel()
        logger.debug(f"Reveal of message {self._message_id} finished.")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            if self.tick():
                return
