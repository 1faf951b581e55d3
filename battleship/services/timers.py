"""Cancellable timers driven by the running asyncio loop.

Every timer is a TimerHandle wrapping one task. Owners keep the handle and
cancel it when they leave the state that armed it. Cancelling a handle from
inside its own callback is allowed: the flag is set and the loop exits after
the callback returns.
"""
import asyncio
import inspect
import math
import traceback
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from battleship.schemas import WorldPos
from battleship.utils.audit import dbg

Callback = Callable[..., Union[Awaitable[Any], Any]]
Clock = Callable[[], float]
RoundTick = Literal["idle", "warn", "expire"]
ProximityVerdict = Literal["ok", "warn", "forfeit"]


async def _invoke(name: str, callback: Callback, *args) -> None:
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        # logged and dropped at the timer boundary
        dbg(None, f"[timer {name}] callback failed:\n" + traceback.format_exc())


class TimerHandle:
    def __init__(self, name: str):
        self.name = name
        self.cancelled = False
        self.fired = False
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return not self.cancelled and self._task is not None and not self._task.done()

    def cancel(self) -> None:
        self.cancelled = True
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else ("active" if self.active else "done")
        return f"<TimerHandle {self.name} {state}>"


class RoundClock:
    """Pure round-timer arithmetic, fed with elapsed seconds."""

    def __init__(self, duration: float, warning_window: float):
        self.duration = duration
        self.warning_window = warning_window
        self.warned = False
        self.expired = False

    def remaining(self, elapsed: float) -> int:
        return max(0, math.ceil(self.duration - elapsed))

    def tick(self, elapsed: float) -> RoundTick:
        if self.expired:
            return "idle"
        if elapsed >= self.duration:
            self.expired = True
            return "expire"
        if not self.warned and elapsed >= self.duration - self.warning_window:
            self.warned = True
            return "warn"
        return "idle"


def squared_distance(a: WorldPos, b: WorldPos) -> float:
    return sum((p - q) ** 2 for p, q in zip(a, b))


def proximity_verdict(pos: WorldPos, anchor: WorldPos, max_dist: float) -> ProximityVerdict:
    """Compare a player's position with their play-space anchor.

    Distances are in tenths of a world unit: beyond `max_dist*10` forfeits,
    beyond half of that warns.
    """
    dist_sq = squared_distance(pos, anchor)
    if dist_sq > (max_dist * 10) ** 2:
        return "forfeit"
    if dist_sq > (max_dist * 10 * 0.5) ** 2:
        return "warn"
    return "ok"


class TimerService:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock

    def now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _spawn(self, handle: TimerHandle, coro) -> TimerHandle:
        handle._task = asyncio.get_running_loop().create_task(coro, name=f"timer:{handle.name}")
        return handle

    def once(self, delay: float, callback: Callback, *, name: str = "once") -> TimerHandle:
        """Run callback once after `delay` seconds unless cancelled first."""
        handle = TimerHandle(name)

        async def run():
            await asyncio.sleep(delay)
            if handle.cancelled:
                return
            handle.fired = True
            await _invoke(name, callback)

        return self._spawn(handle, run())

    def every(self, interval: float, callback: Callback, *, name: str = "every") -> TimerHandle:
        """Run callback every `interval` seconds until cancelled."""
        handle = TimerHandle(name)

        async def run():
            while not handle.cancelled:
                await asyncio.sleep(interval)
                if handle.cancelled:
                    break
                handle.fired = True
                await _invoke(name, callback)

        return self._spawn(handle, run())

    def round_timer(self, duration: float, warning_window: float,
                    on_warning: Callback, on_expire: Callback,
                    *, interval: float = 1.0, name: str = "round") -> TimerHandle:
        """Tick every `interval`; warn once inside the window, then expire.

        on_warning receives the whole seconds remaining.
        """
        handle = TimerHandle(name)
        clock = RoundClock(duration, warning_window)

        async def run():
            start = self.now()
            while not handle.cancelled:
                await asyncio.sleep(interval)
                if handle.cancelled:
                    break
                elapsed = self.now() - start
                verdict = clock.tick(elapsed)
                if verdict == "warn":
                    await _invoke(name, on_warning, clock.remaining(elapsed))
                elif verdict == "expire":
                    handle.fired = True
                    await _invoke(name, on_expire)
                    break

        return self._spawn(handle, run())
