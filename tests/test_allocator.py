import pytest

from ossim.allocator import Allocator, best_fit, first_fit, resolve_policy, worst_fit
from ossim.errors import InvariantViolation, OutOfMemoryError
from ossim.memory import Memory
from ossim.models import FitPolicy


def _fragmented(policy):
    """
    Allocator over 300 words whose free map is {(0, 50), (100, 30), (200, 100)}.
    """
    alloc = Allocator(Memory(300), policy)
    assert alloc.alloc(300) == 0
    alloc.free(0, 49)
    alloc.free(100, 129)
    alloc.free(200, 299)
    assert list(alloc.free_intervals()) == [(0, 50), (100, 30), (200, 100)]
    return alloc


def test_initial_free_map_is_whole_memory():
    alloc = Allocator(Memory(1000))
    assert list(alloc.free_intervals()) == [(0, 1000)]
    assert alloc.free_words == 1000


def test_first_fit_splits_from_front():
    alloc = Allocator(Memory(1000))
    assert alloc.alloc(100) == 0
    assert alloc.alloc(100) == 100
    assert list(alloc.free_intervals()) == [(200, 800)]


def test_exact_fit_removes_interval():
    alloc = Allocator(Memory(100))
    assert alloc.alloc(100) == 0
    assert list(alloc.free_intervals()) == []


def test_policies_choose_different_intervals():
    assert _fragmented(FitPolicy.FIRST_FIT).alloc(30) == 0
    assert _fragmented(FitPolicy.BEST_FIT).alloc(30) == 100
    assert _fragmented(FitPolicy.WORST_FIT).alloc(30) == 200


def test_best_fit_exact_fit_consumes_interval():
    alloc = _fragmented("best")
    alloc.alloc(30)
    assert list(alloc.free_intervals()) == [(0, 50), (200, 100)]


def test_policy_functions_tie_break_on_lowest_address():
    intervals = [(0, 40), (100, 40), (200, 40)]
    assert first_fit(intervals, 40) == 0
    assert best_fit(intervals, 10) == 0
    assert worst_fit(intervals, 10) == 0
    assert worst_fit(intervals, 41) is None
    assert best_fit([], 1) is None


def test_out_of_memory_leaves_free_map_untouched():
    alloc = _fragmented("first")
    with pytest.raises(OutOfMemoryError):
        alloc.alloc(101)
    assert list(alloc.free_intervals()) == [(0, 50), (100, 30), (200, 100)]


def test_alloc_rejects_non_positive_size():
    alloc = Allocator(Memory(10))
    with pytest.raises(ValueError):
        alloc.alloc(0)


def test_free_coalesces_both_neighbours():
    alloc = _fragmented("first")
    alloc.alloc(50)  # takes (0, 50)
    alloc.free(0, 49)
    alloc.free(50, 99)
    assert list(alloc.free_intervals()) == [(0, 130), (200, 100)]
    alloc.free(130, 199)
    assert list(alloc.free_intervals()) == [(0, 300)]


def test_free_zeroes_cells():
    mem = Memory(20)
    alloc = Allocator(mem)
    base = alloc.alloc(10)
    mem.fill(base, base + 9, 0xFF0000)
    alloc.free(base, base + 9)
    assert mem.dump(0, 19) == [0] * 20


def test_double_free_is_fatal():
    alloc = Allocator(Memory(300))
    alloc.alloc(100)
    alloc.free(0, 99)
    with pytest.raises(InvariantViolation):
        alloc.free(0, 99)


def test_free_overlapping_free_space_is_fatal():
    alloc = _fragmented("first")
    with pytest.raises(InvariantViolation):
        alloc.free(40, 60)
    with pytest.raises(InvariantViolation):
        alloc.free(90, 110)
    with pytest.raises(InvariantViolation):
        alloc.free(250, 400)


def test_custom_policy_callable():
    last_interval = lambda intervals, size: intervals[-1][0]  # noqa: E731
    alloc = Allocator(Memory(300), last_interval)
    alloc.alloc(300)
    alloc.free(0, 49)
    alloc.free(200, 299)
    assert alloc.alloc(10) == 200


def test_resolve_policy_names():
    assert resolve_policy("first") is first_fit
    assert resolve_policy("BEST_FIT") is best_fit
    assert resolve_policy("worst-fit") is worst_fit
    assert resolve_policy(FitPolicy.BEST_FIT) is best_fit
    with pytest.raises(ValueError):
        resolve_policy("random")


def test_resolve_policy_rejects_other_types():
    with pytest.raises(ValueError):
        resolve_policy(42)
    with pytest.raises(ValueError):
        resolve_policy(None)
