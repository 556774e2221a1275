from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ProcessState(Enum):
    READY = "ready"
    RUNNING = "running"
    WAITING = "waiting"
    TERMINATED = "terminated"


class FitPolicy(Enum):
    FIRST_FIT = "first"
    BEST_FIT = "best"
    WORST_FIT = "worst"


def parse_color(value) -> int:
    """
    Accept an int or a ``#rrggbb`` string and return a 24-bit RGB word.
    """
    if isinstance(value, int):
        color = value
    else:
        text = str(value).strip()
        try:
            color = int(text[1:], 16) if text.startswith("#") else int(text, 0)
        except ValueError as exc:
            raise ValueError(f"Invalid color: {value!r}") from exc
    if not 0 <= color <= 0xFFFFFF:
        raise ValueError(f"Color out of range: {value!r}")
    return color


def format_color(color: int) -> str:
    return f"#{color:06x}"


@dataclass(frozen=True)
class Program:
    """
    Opaque payload loaded into memory: only its size and display color matter.
    """

    size: int
    color: int
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"Program size must be positive, got {self.size}")

    @classmethod
    def random(cls, rng: random.Random, min_size: int = 1000, max_size: int = 20000) -> "Program":
        # Kept away from black so loaded cells are distinguishable from free ones.
        return cls(size=rng.randint(min_size, max_size), color=rng.randint(0x101010, 0xFFFFFF))


@dataclass(eq=False)
class ProcessControlBlock:
    """
    All kernel-visible state of one process.

    PCBs compare by identity; two blocks are never interchangeable even if
    their fields match.
    """

    pid: int
    base: int
    limit: int
    program: Program
    program_counter: int = 0
    registers: List[int] = field(default_factory=list)
    state: ProcessState = ProcessState.READY

    @property
    def size(self) -> int:
        return self.limit - self.base + 1

    def __repr__(self) -> str:
        return f"PCB(pid={self.pid}, state={self.state.name}, base={self.base}, limit={self.limit})"


@dataclass
class Dispatch:
    """
    One entry of the dispatch timeline: ``pid`` was loaded on the CPU at ``cycle``.
    """

    cycle: int
    pid: int


@dataclass
class Event:
    """
    One host input delivered to the kernel between (or as) ticks.
    """

    op: str
    count: int = 1
    size: Optional[int] = None
    color: Optional[int] = None
    pid: Optional[int] = None


@dataclass
class SimulationStats:
    cycles: int
    busy_cycles: int
    idle_cycles: int
    cpu_utilization: float
    context_switches: int
    dispatches: int
    created: int
    killed: int
    rejected: int
    free_words: int
    largest_free: int
    fragmentation: float
