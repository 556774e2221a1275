from __future__ import annotations

from typing import List

from .errors import OutOfRangeError

DEFAULT_MEMORY_SIZE = 256000


class Memory:
    """
    Fixed-size linear store of word cells, all zero at start.

    Memory does no access control; region bounds are the kernel's business.
    """

    def __init__(self, size: int = DEFAULT_MEMORY_SIZE) -> None:
        if size <= 0:
            raise ValueError(f"Memory size must be positive, got {size}")
        self._cells: List[int] = [0] * size

    @property
    def size(self) -> int:
        return len(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def _check(self, addr: int) -> None:
        if not 0 <= addr < len(self._cells):
            raise OutOfRangeError(f"Address {addr} outside [0, {len(self._cells)})")

    def read(self, addr: int) -> int:
        self._check(addr)
        return self._cells[addr]

    def write(self, addr: int, word: int) -> None:
        self._check(addr)
        self._cells[addr] = word

    def fill(self, start: int, end: int, word: int) -> None:
        """
        Write ``word`` into every cell of the inclusive range ``[start, end]``.
        """
        if start > end:
            raise ValueError(f"Empty range [{start}, {end}]")
        self._check(start)
        self._check(end)
        self._cells[start : end + 1] = [word] * (end - start + 1)

    def dump(self, start: int, end: int) -> List[int]:
        self._check(start)
        self._check(end)
        return self._cells[start : end + 1]
