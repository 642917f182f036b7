"""
Seedable random source shared by the evaluator.

One source is created per process on first use. Draws go through a lock so
that threads sharing it never interleave on the generator state.
"""

import logging
import random
import threading
from typing import List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RandomSource:
    """Lock-guarded wrapper around random.Random"""

    def __init__(self, seed: Optional[int] = None):
        self.rng = random.Random(seed)
        self._lock = threading.Lock()

    def seed(self, seed: Optional[int]):
        with self._lock:
            self.rng.seed(seed)
        logger.debug("Random source reseeded with %r", seed)

    def randint(self, low: int, high: int) -> int:
        """Integer in [low, high]"""
        with self._lock:
            return self.rng.randint(low, high)

    def uniform_half_open(self, low: float, high: float) -> float:
        """Float in [low, high) for finite bounds with low < high.

        Interpolating between the bounds avoids overflow in high - low. When
        rounding lands on high, low is returned instead.
        """
        with self._lock:
            r = self.rng.random()
        result = low * (1.0 - r) + high * r
        if not low <= result < high:
            return low
        return result

    def choice(self, items: Sequence[T]) -> T:
        with self._lock:
            return self.rng.choice(items)

    def shuffled(self, items: Sequence[T]) -> List[T]:
        """Shuffled copy; the input is left untouched"""
        result = list(items)
        with self._lock:
            self.rng.shuffle(result)
        return result


_default_source: Optional[RandomSource] = None
_default_lock = threading.Lock()


def get_default_source() -> RandomSource:
    """The process-wide source, created on first use"""
    global _default_source
    with _default_lock:
        if _default_source is None:
            _default_source = RandomSource()
        return _default_source
