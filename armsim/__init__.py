"""A simulator for a subset of the 32-bit ARM instruction set, with an ELF loader and a command line runner."""

__version__ = "0.1.0"
__all__ = ["barrel_shifter", "cli", "constants", "cpu", "decoder", "elf", "exceptions"]