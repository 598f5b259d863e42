#!/usr/bin/env python3
"""
Command line front-end for the ARM64 subset debugger.

`decode` prints the decoded form of every instruction in a source file,
`run` executes it and dumps the final registers and stack, and `gui` opens
the PyQt6 debugger window.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from core.config import ConfigError, EmulatorConfig, load_config, log_level_value
from core.emulator import Emulator, StepLimitExceeded
from core.errors import EmulationError
from core.formatting import format_decoded, format_registers, format_stack
from core.model import Program
from core.program import build_program_from_file
from core.stack import StackMemory

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_PARSE = 2
EXIT_RUNTIME = 3
EXIT_STEP_LIMIT = 4


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _int_arg(raw: str) -> int:
    try:
        return int(raw, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {raw!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="arm64-debugger", description="Decode and run ARM64 subset assembly.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode = subparsers.add_parser("decode", help="Print decoded instructions")
    decode.add_argument("file", help="Assembly source file")

    run = subparsers.add_parser("run", help="Run a program and dump registers and stack")
    run.add_argument("file", help="Assembly source file")
    run.add_argument("--trace", action="store_true", help="Print each instruction before it executes")
    run.add_argument("--max-steps", type=_int_arg, default=None, help="Abort after N steps")
    run.add_argument("--stack-base", type=_int_arg, default=None, help="Lowest stack address")
    run.add_argument("--stack-size", type=_int_arg, default=None, help="Stack size in bytes")
    run.add_argument("--random-fill", action="store_true", help="Fill the stack with seeded random bytes")
    run.add_argument("--config", default=None, help="JSON settings file")

    gui = subparsers.add_parser("gui", help="Open the graphical debugger")
    gui.add_argument("file", nargs="?", default=None, help="Assembly source file to open")
    gui.add_argument("--config", default=None, help="JSON settings file")
    return parser


def _resolve_config(args: argparse.Namespace) -> EmulatorConfig:
    cfg = load_config(args.config)
    overrides = {}
    for key in ("max_steps", "stack_base", "stack_size"):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    if overrides:
        cfg = load_config({**cfg.to_json(), **overrides})
    return cfg


def _load_program(path: str) -> Program:
    program = build_program_from_file(path)
    logger.info("Loaded %d instructions from %s", len(program.instructions), path)
    return program


def cmd_decode(args: argparse.Namespace) -> int:
    program = _load_program(args.file)
    for instr in program.instructions:
        print(format_decoded(instr.index, instr.instruction))
    return EXIT_OK


def cmd_run(args: argparse.Namespace, cfg: EmulatorConfig) -> int:
    program = _load_program(args.file)
    emulator = Emulator(program, stack=StackMemory(cfg.stack_base, cfg.stack_size))
    if args.random_fill:
        emulator.stack.fill_random()

    def trace(pc: int) -> None:
        instr = program.instruction_at(pc)
        print(f"0x{pc:04X}: {instr.text.strip() if instr else '<end>'}")

    exit_code = EXIT_OK
    try:
        executed = emulator.run(cfg.max_steps, trace if args.trace else None)
        print(f"Executed {executed} instructions.")
    except StepLimitExceeded as exc:
        print(f"error: {exc}", file=sys.stderr)
        exit_code = EXIT_STEP_LIMIT
    except EmulationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        exit_code = EXIT_RUNTIME

    print(format_registers(emulator.registers))
    print(format_stack(emulator.stack))
    return exit_code


def cmd_gui(args: argparse.Namespace, cfg: EmulatorConfig) -> int:
    from ui.main_window import run_app

    return run_app(args.file, cfg)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = _resolve_config(args) if args.command in ("run", "gui") else load_config()
    except ConfigError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else log_level_value(cfg),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        if args.command == "decode":
            return cmd_decode(args)
        if args.command == "run":
            return cmd_run(args, cfg)
        return cmd_gui(args, cfg)
    except EmulationError as exc:
        print(f"parse error: {exc}", file=sys.stderr)
        return EXIT_PARSE
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
