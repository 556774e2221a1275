from __future__ import annotations

from typing import Dict, List

from .kernel import OperatingSystem
from .models import Dispatch, SimulationStats


def compute_stats(kernel: OperatingSystem) -> SimulationStats:
    """
    Summarize CPU usage, scheduling activity and allocator health.
    """
    cycles = kernel.cpu.cycle_count
    cpu_utilization = kernel.busy_cycles / cycles if cycles > 0 else 0.0

    free_words = kernel.allocator.free_words
    largest_free = kernel.allocator.largest_free
    # External fragmentation: share of free space unusable by a single request.
    fragmentation = 1.0 - largest_free / free_words if free_words > 0 else 0.0

    return SimulationStats(
        cycles=cycles,
        busy_cycles=kernel.busy_cycles,
        idle_cycles=kernel.idle_cycles,
        cpu_utilization=cpu_utilization,
        context_switches=kernel.context_switches,
        dispatches=len(kernel.trace),
        created=kernel.created,
        killed=kernel.killed,
        rejected=kernel.rejected,
        free_words=free_words,
        largest_free=largest_free,
        fragmentation=fragmentation,
    )


def dispatch_counts(trace: List[Dispatch]) -> Dict[int, int]:
    """
    Number of times each pid was dispatched, in order of first dispatch.
    """
    counts: Dict[int, int] = {}
    for entry in trace:
        counts[entry.pid] = counts.get(entry.pid, 0) + 1
    return counts
