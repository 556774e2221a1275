from __future__ import annotations

import argparse
import logging
import random
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .allocator import POLICIES
from .config import SimulatorConfig, load_config
from .errors import InvariantViolation, OutOfMemoryError
from .kernel import OperatingSystem
from .metrics import compute_stats, dispatch_counts
from .models import Event, Program
from .render import build_kernel_view, build_stats_table
from .script_io import load_script, run_script

logger = logging.getLogger(__name__)

POLICY_NAMES = [policy.value for policy in POLICIES]

HELP_TEXT = (
    "[bold]s[/bold] or space: spawn  [bold]b[/bold]: block  [bold]k[/bold]: kill  "
    "[bold]u PID[/bold]: unblock  [bold]t [N][/bold]: tick  [bold]v[/bold]: view  [bold]q[/bold]: quit"
)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to a JSON simulator config file.",
    )
    common.add_argument(
        "--memory-size",
        "-m",
        type=int,
        default=None,
        help="Number of word cells in physical memory (default: 256000).",
    )
    common.add_argument(
        "--policy",
        "-p",
        choices=POLICY_NAMES,
        default=None,
        help="Allocator fit policy (default: first).",
    )
    common.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for randomly loaded programs.",
    )
    common.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Kernel log level (default: WARNING).",
    )

    parser = argparse.ArgumentParser(
        prog="ossim",
        description="Round-robin operating system simulator with a contiguous memory allocator.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run an event script (JSON or CSV) and print the final state.",
    )
    run_parser.add_argument(
        "--script",
        "-s",
        required=True,
        help="Path to JSON or CSV event script.",
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Print one line per simulated tick.",
    )

    subparsers.add_parser(
        "interactive",
        parents=[common],
        help="Drive the kernel by hand: spawn, block, kill, unblock and tick.",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        parents=[common],
        help="Run one script under every fit policy and compare allocator outcomes.",
    )
    compare_parser.add_argument(
        "--script",
        "-s",
        required=True,
        help="Path to JSON or CSV event script.",
    )

    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
    )


def resolve_config(args: argparse.Namespace) -> SimulatorConfig:
    config = load_config(args.config) if args.config else SimulatorConfig()
    return config.with_overrides(memory_size=args.memory_size, policy=args.policy, seed=args.seed)


def _print_state(kernel: OperatingSystem, console: Console) -> None:
    console.print(build_kernel_view(kernel))


def _print_stats(kernel: OperatingSystem, console: Console) -> None:
    console.print(build_stats_table(compute_stats(kernel)))
    counts = dispatch_counts(kernel.trace)
    if counts:
        console.print(
            "[bold]Dispatches per pid:[/bold] "
            + ", ".join(f"{pid}x{n}" for pid, n in counts.items())
        )


def _trace_line(kernel: OperatingSystem, console: Console) -> None:
    ready = " ".join(str(pcb.pid) for pcb in kernel.ready_queue)
    waiting = " ".join(str(pcb.pid) for pcb in kernel.wait_queue)
    running = "[idle]" if kernel.cpu.is_idle else str(kernel.current_pid)
    console.print(
        f"t={kernel.cpu.cycle_count:4d}: {running:>6}  ready=[{ready}]  wait=[{waiting}]",
        highlight=False,
        markup=False,
    )


def _run_script(config: SimulatorConfig, events: List[Event], trace: bool, console: Console) -> OperatingSystem:
    kernel = OperatingSystem.build(config)
    on_tick = (lambda k: _trace_line(k, console)) if trace else None
    rejected = run_script(
        kernel,
        events,
        rng=random.Random(config.seed),
        min_size=config.program_min_size,
        max_size=config.program_max_size,
        on_tick=on_tick,
    )
    if rejected:
        console.print(f"[yellow]{rejected} exec event(s) rejected: out of memory.[/yellow]")
    kernel.check_invariants()
    return kernel


def _run_compare(config: SimulatorConfig, events: List[Event], console: Console) -> None:
    summary_table = Table(title="Fit policy comparison", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Policy")
    summary_table.add_column("Created", justify="right")
    summary_table.add_column("Rejected", justify="right")
    summary_table.add_column("Free words", justify="right")
    summary_table.add_column("Largest free", justify="right")
    summary_table.add_column("Free intervals", justify="right")
    summary_table.add_column("Fragmentation", justify="right")

    # Same seed for every policy so random programs are identical.
    seed = config.seed if config.seed is not None else random.randrange(2**32)
    for name in POLICY_NAMES:
        kernel = _run_script(config.with_overrides(policy=name, seed=seed), events, False, Console(quiet=True))
        stats = compute_stats(kernel)
        summary_table.add_row(
            name,
            str(stats.created),
            str(stats.rejected),
            str(stats.free_words),
            str(stats.largest_free),
            str(len(list(kernel.allocator.free_intervals()))),
            f"{stats.fragmentation*100:.1f}%",
        )

    console.print(summary_table)


def _interactive(config: SimulatorConfig, console: Console) -> None:
    kernel = OperatingSystem.build(config)
    rng = random.Random(config.seed)

    console.print("\n[bold cyan]OS Simulator[/bold cyan] [dim](q to quit)[/dim]")
    console.print(HELP_TEXT)

    while True:
        try:
            line = input("> ")
        except EOFError:
            return
        command = line.strip().lower()
        parts = command.split()

        if command in {"q", "quit", "exit"}:
            return
        if command in {"", "s", "spawn"}:
            program = Program.random(rng, config.program_min_size, config.program_max_size)
            try:
                pcb = kernel.exec(program)
                console.print(f"Spawned pid {pcb.pid} ({program.size} words at {pcb.base}).")
            except OutOfMemoryError as exc:
                console.print(f"[red]Rejected:[/red] {exc}")
        elif parts[0] in {"b", "block"}:
            pcb = kernel.block_current()
            console.print("CPU is idle." if pcb is None else f"Blocked pid {pcb.pid}.")
        elif parts[0] in {"k", "kill"}:
            pcb = kernel.kill_current()
            console.print("CPU is idle." if pcb is None else f"Killed pid {pcb.pid}.")
        elif parts[0] in {"u", "unblock"}:
            try:
                pid = int(parts[1])
            except (IndexError, ValueError):
                console.print("[red]Usage: u PID[/red]")
                continue
            waiter = kernel.find_waiting(pid)
            if waiter is None or not kernel.interrupt_and_unblock(waiter):
                console.print(f"[yellow]pid {pid} is not waiting.[/yellow]")
            else:
                console.print(f"Unblocked pid {pid}.")
        elif parts[0] in {"t", "tick"}:
            try:
                count = int(parts[1]) if len(parts) > 1 else 1
            except ValueError:
                console.print("[red]Invalid tick count.[/red]")
                continue
            for _ in range(count):
                kernel.tick()
        elif parts[0] in {"v", "view"}:
            pass
        elif parts[0] in {"h", "help", "?"}:
            console.print(HELP_TEXT)
            continue
        else:
            console.print("[red]Unknown command.[/red]")
            continue

        kernel.check_invariants()
        _print_state(kernel, console)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    console = Console()

    try:
        config = resolve_config(args)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    try:
        if args.command == "run":
            events = load_script(Path(args.script))
            kernel = _run_script(config, events, args.trace, console)
            _print_state(kernel, console)
            _print_stats(kernel, console)
            return 0

        if args.command == "compare":
            events = load_script(Path(args.script))
            _run_compare(config, events, console)
            return 0

        if args.command == "interactive":
            _interactive(config, console)
            return 0
    except InvariantViolation as exc:
        logger.error("simulation halted: %s", exc)
        return 2

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
