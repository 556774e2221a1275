import random
from pathlib import Path

import pytest

from ossim.cpu import CPU
from ossim.kernel import OperatingSystem
from ossim.memory import Memory
from ossim.models import Event
from ossim.script_io import load_script, program_for, run_script


def test_load_json(tmp_path: Path):
    p = tmp_path / "s.json"
    p.write_text('[{"op":"exec","size":100,"color":"#ff0000"},'
                 '{"op":"tick","count":3},'
                 '{"op":"unblock","pid":10},'
                 '{"op":"BLOCK"}]')
    events = load_script(p)
    assert isinstance(events[0], Event)
    assert events[0].size == 100 and events[0].color == 0xFF0000
    assert events[1].count == 3
    assert events[2].pid == 10
    assert events[3].op == "block" and events[3].count == 1


def test_load_csv(tmp_path: Path):
    p = tmp_path / "s.csv"
    p.write_text("op,count,size,color,pid\nexec,,100,#00ff00,\ntick,5,,,\nkill,,,,\nunblock,,,,11\n")
    events = load_script(p)
    assert [e.op for e in events] == ["exec", "tick", "kill", "unblock"]
    assert events[0].color == 0x00FF00
    assert events[0].pid is None
    assert events[1].count == 5
    assert events[3].pid == 11


def test_rejects_bad_entries(tmp_path: Path):
    p = tmp_path / "s.json"
    p.write_text('[{"op":"fork"}]')
    with pytest.raises(ValueError):
        load_script(p)
    p.write_text('[{"op":"unblock"}]')
    with pytest.raises(ValueError):
        load_script(p)
    p.write_text('[{"op":"exec","size":"lots"}]')
    with pytest.raises(ValueError):
        load_script(p)
    p.write_text('{"op":"tick"}')
    with pytest.raises(ValueError):
        load_script(p)


def test_rejects_unknown_format(tmp_path: Path):
    p = tmp_path / "s.yaml"
    p.write_text("- op: tick\n")
    with pytest.raises(ValueError):
        load_script(p)


def test_program_for_fills_missing_fields():
    rng = random.Random(7)
    program = program_for(Event(op="exec", size=42), rng, 10, 20)
    assert program.size == 42
    assert 0x101010 <= program.color <= 0xFFFFFF
    program = program_for(Event(op="exec", color=0xABCDEF), rng, 10, 20)
    assert 10 <= program.size <= 20
    assert program.color == 0xABCDEF


def test_run_script_block_unblock_and_oom():
    kernel = OperatingSystem(CPU(), Memory(250), "first")
    events = [
        Event(op="exec", size=100, color=0xFF0000),
        Event(op="exec", size=100, color=0x00FF00),
        Event(op="exec", size=100, color=0x0000FF),
        Event(op="tick"),
        Event(op="block"),
        Event(op="unblock", pid=99),
        Event(op="unblock", pid=10),
        Event(op="kill"),
    ]
    rejected = run_script(kernel, events, rng=random.Random(0))
    assert rejected == 1
    assert kernel.rejected == 1
    # 11 was killed after 10 blocked; 10 was unblocked and then dispatched.
    assert kernel.current_pid == 10
    assert kernel.ready_queue.is_empty()
    assert list(kernel.allocator.free_intervals()) == [(100, 150)]
    kernel.check_invariants()


def test_run_script_reports_each_tick():
    kernel = OperatingSystem(CPU(), Memory(100), "first")
    seen = []
    run_script(kernel, [Event(op="tick", count=4)], on_tick=lambda k: seen.append(k.cpu.cycle_count))
    assert seen == [1, 2, 3, 4]
