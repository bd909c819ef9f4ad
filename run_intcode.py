#!/usr/bin/env python3
"""
Intcode - Program Runner

Run an Intcode program from a file or from the bundled examples.

Usage:
    # Run a program with some input
    python run_intcode.py program.txt --input 1

    # Patch memory before running and show a cell afterwards
    python run_intcode.py program.txt --set 1=12 --set 2=2 --show 0

    # Amplifier ring: one machine per value, seed 0 into the first
    python run_intcode.py --example feedback-amplifier --pipeline 9,8,7,6,5 --feedback --seed 0

    # Listing
    python run_intcode.py --example quine --disassemble
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from intcode import (
    IntcodeConfig,
    IntcodeError,
    Machine,
    PROGRAMS,
    Pipeline,
    disassemble,
    parse_program,
)


def parse_values(text: Optional[str]) -> List[int]:
    """Parse a comma-separated list of integers from the command line."""
    if not text:
        return []
    try:
        return [int(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected comma-separated integers, got {text!r}")


def parse_override(text: str) -> Tuple[int, int]:
    """Parse an ADDR=VALUE memory patch."""
    address, sep, value = text.partition("=")
    try:
        if not sep:
            raise ValueError
        return int(address), int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected ADDR=VALUE, got {text!r}")


def load_program(args) -> List[int]:
    """Read the program from --example or the positional file."""
    if args.example:
        return parse_program(PROGRAMS[args.example])
    return parse_program(Path(args.program).read_text())


def run_single(
    program: List[int],
    inputs: List[int],
    overrides: List[Tuple[int, int]],
    show: List[int],
    config: IntcodeConfig,
):
    """Run one machine on its own thread and print its output."""
    machine = Machine(program, overrides=overrides, max_steps=config.max_steps, name="main")
    handle = machine.handle()
    for value in inputs:
        handle.send(value)
    handle.close_input()

    handle.start()
    handle.join(timeout=config.join_timeout)

    output = handle.drain()
    if output:
        print(",".join(str(v) for v in output))
    for address in show:
        print(f"[{address}] = {machine.memory.read(address)}")

    metrics = machine.get_metrics()
    logging.getLogger("run_intcode").info(
        "Executed %d instructions, memory size %d",
        metrics["instructions_executed"], metrics["memory_size"],
    )


def run_pipeline(
    program: List[int],
    stage_inputs: List[int],
    seed: List[int],
    feedback: bool,
    overrides: List[Tuple[int, int]],
    config: IntcodeConfig,
):
    """Run one machine per stage input, wired as a chain or ring."""
    pipeline = Pipeline.chain(
        program,
        len(stage_inputs),
        feedback=feedback,
        max_steps=config.max_steps,
        overrides=overrides,
    )
    for index, value in enumerate(stage_inputs):
        pipeline.seed(index, value)
    pipeline.seed(0, *seed)

    output = pipeline.run(timeout=config.join_timeout)
    print(",".join(str(v) for v in output))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run Intcode programs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "program",
        nargs="?",
        help="Path to a file holding comma-separated program text",
    )

    parser.add_argument(
        "--example",
        choices=sorted(PROGRAMS),
        help="Run a bundled example program instead of a file",
    )

    parser.add_argument(
        "--input",
        type=parse_values,
        default=[],
        help="Comma-separated input values (e.g., 1,2,3)",
    )

    parser.add_argument(
        "--set",
        dest="overrides",
        type=parse_override,
        action="append",
        default=[],
        metavar="ADDR=VALUE",
        help="Patch a memory cell before running (repeatable)",
    )

    parser.add_argument(
        "--show",
        type=int,
        action="append",
        default=[],
        metavar="ADDR",
        help="Print a memory cell after the run (repeatable)",
    )

    parser.add_argument(
        "--disassemble",
        action="store_true",
        help="Print an instruction listing instead of running",
    )

    parser.add_argument(
        "--pipeline",
        type=parse_values,
        help="Run one machine per value, each seeded with its value",
    )

    parser.add_argument(
        "--feedback",
        action="store_true",
        help="Wire the pipeline as a ring",
    )

    parser.add_argument(
        "--seed",
        type=parse_values,
        default=[],
        help="Extra input for the first pipeline machine (e.g., 0)",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        help="dotenv file with INTCODE_* settings",
    )

    parser.add_argument(
        "--max-steps",
        type=int,
        help="Fault any machine that runs longer than this",
    )

    args = parser.parse_args(argv)

    if not args.program and not args.example:
        parser.print_help()
        print("\nQuick start: python run_intcode.py --example quine")
        return 2

    if args.pipeline and args.input:
        parser.error("--input cannot be combined with --pipeline; use --seed")

    try:
        config = IntcodeConfig.from_env(args.env_file)
        if args.max_steps is not None:
            config = dataclasses.replace(config, max_steps=args.max_steps)
    except ValueError as e:
        print(f"Error: bad configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=config.logging_level)

    try:
        program = load_program(args)

        if args.disassemble:
            for line in disassemble(program):
                print(line)
        elif args.pipeline:
            run_pipeline(
                program, args.pipeline, args.seed, args.feedback, args.overrides, config
            )
        else:
            run_single(program, args.input, args.overrides, args.show, config)
    except IntcodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: cannot read program: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
