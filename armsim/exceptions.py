"""Errors raised by the simulator."""

from __future__ import annotations

_WORD_MASK = 0xFFFFFFFF


class SimulatorError(Exception):
    """Base class for errors detected while simulating a program."""


class NotImplementedInstructionError(SimulatorError):
    """An instruction or feature the simulator does not support was hit."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Function {name} not yet implemented")
        self.name = name


class InvalidMemoryAccessError(SimulatorError):
    """An access outside the simulated memory."""

    def __init__(self, address: int) -> None:
        self.address = address & _WORD_MASK
        shown = f"{self.address:#x}" if self.address else "0"
        super().__init__(f"Invalid memory access at address {shown}")


class InvalidRegisterError(SimulatorError):
    """A register number outside r0..r15."""

    def __init__(self, register: int) -> None:
        self.register = register
        super().__init__(
            f"Error trying to access register {register & _WORD_MASK}"
        )


class IllegalStateError(SimulatorError):
    """The simulator reached a state that should not be possible."""


class ProgramExit(Exception):
    """Raised when the simulated program asks to exit."""

    def __init__(self, return_code: int) -> None:
        super().__init__(f"program exited with code {return_code}")
        self.return_code = return_code