"""Registers, operand descriptions and fixed values of the ARM simulator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from armsim.exceptions import InvalidRegisterError


class Register(IntEnum):
    """The sixteen general purpose registers."""

    R0 = 0
    R1 = 1
    R2 = 2
    R3 = 3
    R4 = 4
    R5 = 5
    R6 = 6
    R7 = 7
    R8 = 8
    R9 = 9
    R10 = 10
    R11 = 11
    R12 = 12
    R13 = 13
    R14 = 14
    R15 = 15
    SP = 13
    LR = 14
    PC = 15


class ShiftType(IntEnum):
    """Barrel shifter operations, numbered as in the instruction encoding."""

    LOGICAL_LEFT = 0
    LOGICAL_RIGHT = 1
    ARITHMETIC_RIGHT = 2
    ROTATE_RIGHT = 3


@dataclass(frozen=True)
class BarrelShifterConfig:
    """Which shift to apply to the second operand, and by how much."""

    shift_type: ShiftType = ShiftType.LOGICAL_LEFT
    amount: int = 0


@dataclass(frozen=True)
class ShiftResult:
    """Outcome of a barrel shift: the value and the carry it produces."""

    value: int
    carry: bool
    affect_carry: bool = True


class OperandType(Enum):
    REGISTER = "register"
    IMMEDIATE = "immediate"


@dataclass(frozen=True)
class RightHandOperand:
    """The flexible second operand: an immediate value or a register."""

    type: OperandType = OperandType.IMMEDIATE
    value: int = 0

    @classmethod
    def immediate(cls, value: int) -> RightHandOperand:
        return cls(OperandType.IMMEDIATE, value)

    @classmethod
    def register(cls, reg: int) -> RightHandOperand:
        return cls(OperandType.REGISTER, get_register_from_int(int(reg)))


class OffsetDirection(IntEnum):
    DOWN = 0
    UP = 1


class TransferQuantity(IntEnum):
    WORD = 0
    BYTE = 1


class IndexingMethod(IntEnum):
    POST_INDEXED = 0
    PRE_INDEXED = 1


class Condition(IntEnum):
    """Condition codes held in the top four bits of an instruction."""

    EQ = 0
    NE = 1
    CS = 2
    CC = 3
    MI = 4
    PL = 5
    VS = 6
    VC = 7
    HI = 8
    LS = 9
    GE = 10
    LT = 11
    GT = 12
    LE = 13
    AL = 14


class DataProcessingOperation(Enum):
    BITWISE_AND = "and"
    BITWISE_EOR = "eor"
    SUBTRACT = "sub"
    REVERSE_SUBTRACT = "rsb"
    ADD = "add"
    ADD_WITH_CARRY = "adc"
    SUBTRACT_WITH_CARRY = "sbc"
    REVERSE_SUBTRACT_WITH_CARRY = "rsc"
    MISCELLANEOUS_INSTRUCTION = "misc"
    HALFWORD_MULTIPLY = "smul"
    MULTIPLY = "mul"
    TEST = "tst"
    TEST_EQUIVALENCE = "teq"
    COMPARE = "cmp"
    COMPARE_NEGATIVE = "cmn"
    BITWISE_OR = "orr"
    MOVE = "mov"
    BITWISE_BIT_CLEAR = "bic"
    BITWISE_NOT = "mvn"
    FORM_PC_RELATIVE_ADDRESS = "adr"


FLAG_SHIFT = 28
OP_MASK = 0x0E000000
INSTRUCTION_TYPE_SHIFT = 24
OP_SHIFT = 24

ELF_MAGIC_NUMBER = b"\x7fELF"
ELF_HEADER_SIZE = 0x34

BASE_ADDRESS = 0x10000


def get_register_from_int(value: int) -> Register:
    """Return the register numbered ``value``."""
    try:
        return Register(value)
    except ValueError:
        raise InvalidRegisterError(value) from None


def parse_register_list(bits: int) -> list[Register]:
    """Return the registers whose bits are set in a 16-bit register mask."""
    return [register for register in Register if bits >> register & 1]


def signed_extend(value: int) -> int:
    """Sign-extend a 12-bit immediate (held in a 16-bit field) to 32 bits."""
    short = ((value & 0xFFFF) ^ 0x8000) - 0x8000
    if short & 0x800:
        short |= -0x1000
    return short