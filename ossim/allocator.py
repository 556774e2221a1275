from __future__ import annotations

import logging
from bisect import bisect_left, insort
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from .errors import InvariantViolation, OutOfMemoryError
from .memory import Memory
from .models import FitPolicy

logger = logging.getLogger(__name__)

Interval = Tuple[int, int]
PolicyFunc = Callable[[List[Interval], int], Optional[int]]


def first_fit(intervals: List[Interval], size: int) -> Optional[int]:
    """
    Lowest-addressed interval that can hold ``size`` words.
    """
    for start, length in intervals:
        if length >= size:
            return start
    return None


def best_fit(intervals: List[Interval], size: int) -> Optional[int]:
    """
    Smallest interval that can hold ``size`` words; ties go to the lower address.
    """
    candidates = [(length, start) for start, length in intervals if length >= size]
    if not candidates:
        return None
    return min(candidates)[1]


def worst_fit(intervals: List[Interval], size: int) -> Optional[int]:
    """
    Largest interval, provided it can hold ``size`` words; ties go to the lower address.
    """
    if not intervals:
        return None
    length, neg_start = max((length, -start) for start, length in intervals)
    if length < size:
        return None
    return -neg_start


POLICIES: Dict[FitPolicy, PolicyFunc] = {
    FitPolicy.FIRST_FIT: first_fit,
    FitPolicy.BEST_FIT: best_fit,
    FitPolicy.WORST_FIT: worst_fit,
}


def resolve_policy(policy: Union[str, FitPolicy, PolicyFunc]) -> PolicyFunc:
    """
    Turn a policy name, enum member or custom callable into a policy function.
    """
    if callable(policy) and not isinstance(policy, FitPolicy):
        return policy
    if isinstance(policy, str):
        name = policy.lower().replace("_fit", "").replace("-fit", "")
        try:
            policy = FitPolicy(name)
        except ValueError:
            raise ValueError(f"Unknown fit policy '{policy}'") from None
    if not isinstance(policy, FitPolicy):
        raise ValueError(f"Fit policy must be a name, FitPolicy or callable, got {policy!r}")
    return POLICIES[policy]


class Allocator:
    """
    Contiguous region allocator over a Memory.

    Free space is kept as a map from start address to length. Intervals are
    disjoint, non-empty, sorted and never touch one another.
    """

    def __init__(self, memory: Memory, policy: Union[str, FitPolicy, PolicyFunc] = FitPolicy.FIRST_FIT) -> None:
        self.memory = memory
        self.policy = resolve_policy(policy)
        self._free: Dict[int, int] = {0: memory.size}
        self._starts: List[int] = [0]

    def free_intervals(self) -> Iterator[Interval]:
        """
        Yield ``(start, length)`` for each free interval in ascending address order.
        """
        for start in self._starts:
            yield start, self._free[start]

    @property
    def free_words(self) -> int:
        return sum(self._free.values())

    @property
    def largest_free(self) -> int:
        return max(self._free.values(), default=0)

    def alloc(self, size: int) -> int:
        """
        Reserve ``size`` contiguous words and return the base address.
        """
        if size <= 0:
            raise ValueError(f"Allocation size must be positive, got {size}")

        start = self.policy(list(self.free_intervals()), size)
        if start is None:
            raise OutOfMemoryError(
                f"Cannot allocate {size} words: largest free interval is {self.largest_free}"
            )
        length = self._free.get(start)
        if length is None or length < size:
            raise InvariantViolation(f"Fit policy chose {start}, which cannot hold {size} words")

        self._remove(start)
        if length > size:
            self._insert(start + size, length - size)
        logger.debug("alloc %d words at %d", size, start)
        return start

    def free(self, start: int, end: int) -> None:
        """
        Return the inclusive region ``[start, end]`` to the free map and zero it.
        """
        if not 0 <= start <= end < self.memory.size:
            raise InvariantViolation(f"Cannot free [{start}, {end}]: outside memory bounds")

        idx = bisect_left(self._starts, start)
        prev_start = self._starts[idx - 1] if idx > 0 else None
        next_start = self._starts[idx] if idx < len(self._starts) else None

        if prev_start is not None and prev_start + self._free[prev_start] > start:
            raise InvariantViolation(f"Double free: [{start}, {end}] overlaps free interval at {prev_start}")
        if next_start is not None and next_start <= end:
            raise InvariantViolation(f"Double free: [{start}, {end}] overlaps free interval at {next_start}")

        new_start, new_length = start, end - start + 1
        if prev_start is not None and prev_start + self._free[prev_start] == start:
            new_start = prev_start
            new_length += self._free[prev_start]
            self._remove(prev_start)
        if next_start is not None and next_start == end + 1:
            new_length += self._free[next_start]
            self._remove(next_start)
        self._insert(new_start, new_length)

        self.memory.fill(start, end, 0)
        logger.debug("free [%d, %d]", start, end)

    def _insert(self, start: int, length: int) -> None:
        self._free[start] = length
        insort(self._starts, start)

    def _remove(self, start: int) -> None:
        del self._free[start]
        self._starts.pop(bisect_left(self._starts, start))
