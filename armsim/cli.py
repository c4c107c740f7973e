"""Command line entry point: load an ARM ELF file and simulate it."""

from __future__ import annotations

import sys
from pathlib import Path

from armsim.decoder import run
from armsim.elf import ElfFormatError, load_program
from armsim.exceptions import SimulatorError


def main(argv: list[str] | None = None) -> int:
    """Run the program in the ELF file named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: armsim ELF-Filename", file=sys.stderr)
        return 1

    path = args[0]
    try:
        data = Path(path).read_bytes()
    except OSError:
        print(f"ELF file {path} is not a valid ELF File", file=sys.stderr)
        return 1

    try:
        cpu = load_program(data)
    except ElfFormatError as error:
        print(f"ELF file {path} {error}", file=sys.stderr)
        return 1

    try:
        return_code = run(cpu)
    except SimulatorError as error:
        print("Internal error:")
        print(error)
    else:
        print(f"Internal program exited with code {return_code}")

    print("Execution finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())