import asyncio
from typing import Dict, List

from battleship.errors import PromptPendingError, PromptTimeoutError


class PromptChannel:
    """At most one outstanding question per player, answered by their next command."""

    def __init__(self, timeout: float = 30):
        self.timeout = timeout
        self._pending: Dict[str, asyncio.Future] = {}

    def has_pending(self, player_id: str) -> bool:
        return player_id in self._pending

    async def ask(self, player_id: str) -> List[str]:
        """Wait for the player's next command arguments."""
        if player_id in self._pending:
            raise PromptPendingError("You already have a question waiting for an answer.")
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[player_id] = fut
        try:
            return await asyncio.wait_for(fut, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise PromptTimeoutError("You took too long to answer.") from None
        finally:
            if self._pending.get(player_id) is fut:
                del self._pending[player_id]

    def answer(self, player_id: str, args: List[str]) -> bool:
        fut = self._pending.get(player_id)
        if fut is None or fut.done():
            return False
        fut.set_result(list(args))
        return True

    def cancel(self, player_id: str) -> None:
        fut = self._pending.pop(player_id, None)
        if fut is not None and not fut.done():
            fut.cancel()
