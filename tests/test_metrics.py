from ossim.cpu import CPU
from ossim.kernel import OperatingSystem
from ossim.memory import Memory
from ossim.metrics import compute_stats, dispatch_counts
from ossim.models import Program


def test_stats_for_fresh_kernel():
    stats = compute_stats(OperatingSystem(CPU(), Memory(1000)))
    assert stats.cycles == 0
    assert stats.cpu_utilization == 0.0
    assert stats.free_words == 1000
    assert stats.largest_free == 1000
    assert stats.fragmentation == 0.0


def test_stats_after_rotation_and_kill():
    kernel = OperatingSystem(CPU(), Memory(300))
    for _ in range(3):
        kernel.exec(Program(size=100, color=0xFF0000))
    for _ in range(31):
        kernel.tick()
    kernel.kill_current()  # frees 100..199

    stats = compute_stats(kernel)
    assert stats.cycles == 31
    assert stats.busy_cycles == 30
    assert stats.idle_cycles == 1
    assert abs(stats.cpu_utilization - 30 / 31) < 1e-9
    assert stats.context_switches == 1
    assert stats.dispatches == 3
    assert (stats.created, stats.killed, stats.rejected) == (3, 1, 0)
    assert stats.free_words == 100
    assert stats.fragmentation == 0.0
    assert dispatch_counts(kernel.trace) == {10: 1, 11: 1, 12: 1}


def test_fragmentation_with_split_free_space():
    kernel = OperatingSystem(CPU(), Memory(300))
    for _ in range(3):
        kernel.exec(Program(size=100, color=0xFF0000))
    kernel.tick()
    kernel.kill_current()  # frees 0..99, dispatches 11
    kernel.block_current()  # 11 waits, dispatches 12
    kernel.kill_current()  # frees 200..299
    stats = compute_stats(kernel)
    assert stats.free_words == 200
    assert stats.largest_free == 100
    assert stats.fragmentation == 0.5
