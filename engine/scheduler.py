"""
Interpolation Scheduler
=======================

A list of (start, end, duration, elapsed) tweens advanced once per tick.

CANCELLATION = REMOVAL:
=======================
Cancelling a tween removes it from the list. Its apply callback is never
called again and its on_complete callback never fires.

Tweens are tagged so that everything tied to one layout generation can
be cancelled in one call before that layout is destroyed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional
import itertools
import logging

import numpy as np


logger = logging.getLogger(__name__)


# =============================================================================
# EASING
# =============================================================================

def linear(t: float) -> float:
    return t


def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - pow(-2.0 * t + 2.0, 3) / 2.0


def ease_out_cubic(t: float) -> float:
    return 1.0 - pow(1.0 - t, 3)


def ease_in_cubic(t: float) -> float:
    return t * t * t


# =============================================================================
# TWEEN
# =============================================================================

_tween_ids = itertools.count(1)


@dataclass(eq=False)
class Tween:
    """
    One animated value. start/end may be floats or numpy vectors.

    apply(value) is called with the eased interpolation on every tick,
    and exactly once with `end` on the tick that completes the tween.
    """
    start: Any
    end: Any
    duration: float
    apply: Callable[[Any], None]
    elapsed: float = 0.0
    easing: Callable[[float], float] = ease_in_out_cubic
    on_complete: Optional[Callable[[], None]] = None
    tag: Optional[str] = None
    tween_id: int = field(default_factory=lambda: next(_tween_ids))

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 1.0
        return min(self.elapsed / self.duration, 1.0)

    @property
    def is_finished(self) -> bool:
        return self.progress >= 1.0

    def value_at(self, progress: float) -> Any:
        eased = self.easing(progress)
        if isinstance(self.start, np.ndarray) or isinstance(self.end, np.ndarray):
            start = np.asarray(self.start, dtype=float)
            return start + (np.asarray(self.end, dtype=float) - start) * eased
        return self.start + (self.end - self.start) * eased


class InterpolationScheduler:
    """Advances active tweens without blocking the render tick."""

    def __init__(self):
        self._tweens: List[Tween] = []

    def add(self, tween: Tween) -> Tween:
        self._tweens.append(tween)
        return tween

    def animate(
        self,
        start: Any,
        end: Any,
        duration: float,
        apply: Callable[[Any], None],
        easing: Callable[[float], float] = ease_in_out_cubic,
        on_complete: Optional[Callable[[], None]] = None,
        tag: Optional[str] = None
    ) -> Tween:
        return self.add(Tween(
            start=start,
            end=end,
            duration=duration,
            apply=apply,
            easing=easing,
            on_complete=on_complete,
            tag=tag,
        ))

    def tick(self, dt: float) -> int:
        """
        Advance every tween by dt seconds.

        Completed tweens are removed before their on_complete callbacks run,
        so a callback may schedule new tweens. Returns the number completed.
        """
        if dt < 0:
            raise ValueError("dt must be >= 0")

        finished: List[Tween] = []
        for tween in list(self._tweens):
            if tween not in self._tweens:
                # cancelled by an earlier apply callback this tick
                continue
            tween.elapsed += dt
            if tween.is_finished:
                tween.apply(tween.end)
                finished.append(tween)
            else:
                tween.apply(tween.value_at(tween.progress))

        for tween in finished:
            if tween in self._tweens:
                self._tweens.remove(tween)
        for tween in finished:
            if tween.on_complete is not None:
                tween.on_complete()
        return len(finished)

    def cancel(self, tween: Tween) -> bool:
        if tween in self._tweens:
            self._tweens.remove(tween)
            return True
        return False

    def cancel_tag(self, tag: str) -> int:
        before = len(self._tweens)
        self._tweens = [t for t in self._tweens if t.tag != tag]
        cancelled = before - len(self._tweens)
        if cancelled:
            logger.debug("cancelled %d tweens tagged %r", cancelled, tag)
        return cancelled

    def cancel_all(self) -> int:
        cancelled = len(self._tweens)
        self._tweens = []
        return cancelled

    def has_tag(self, tag: str) -> bool:
        return any(t.tag == tag for t in self._tweens)

    @property
    def active(self) -> int:
        return len(self._tweens)
