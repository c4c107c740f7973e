"""Decoding and execution of 32-bit ARM instruction words."""

from __future__ import annotations

from collections.abc import Callable

from armsim.constants import (
    FLAG_SHIFT,
    BarrelShifterConfig,
    Condition,
    DataProcessingOperation,
    IndexingMethod,
    OffsetDirection,
    Register,
    RightHandOperand,
    ShiftType,
    TransferQuantity,
    get_register_from_int,
    parse_register_list,
    signed_extend,
)
from armsim.cpu import Cpu
from armsim.exceptions import NotImplementedInstructionError, ProgramExit

_WORD_MASK = 0xFFFFFFFF

Op = DataProcessingOperation

_LOW_OPERATIONS = (
    Op.BITWISE_AND,
    Op.BITWISE_EOR,
    Op.SUBTRACT,
    Op.REVERSE_SUBTRACT,
    Op.ADD,
    Op.ADD_WITH_CARRY,
    Op.SUBTRACT_WITH_CARRY,
    Op.REVERSE_SUBTRACT_WITH_CARRY,
)

_HIGH_OPERATIONS = (
    Op.TEST,
    Op.TEST_EQUIVALENCE,
    Op.COMPARE,
    Op.COMPARE_NEGATIVE,
    Op.BITWISE_OR,
    Op.MOVE,
    Op.BITWISE_BIT_CLEAR,
    Op.BITWISE_NOT,
)

_THREE_OPERAND: dict[DataProcessingOperation, Callable[..., None]] = {
    Op.BITWISE_AND: Cpu.and_,
    Op.BITWISE_EOR: Cpu.eor,
    Op.SUBTRACT: Cpu.sub,
    Op.REVERSE_SUBTRACT: Cpu.rsb,
    Op.ADD: Cpu.add,
    Op.ADD_WITH_CARRY: Cpu.adc,
    Op.SUBTRACT_WITH_CARRY: Cpu.sbc,
    Op.BITWISE_OR: Cpu.orr,
    Op.BITWISE_BIT_CLEAR: Cpu.bic,
}

_COMPARISONS: dict[DataProcessingOperation, Callable[..., None]] = {
    Op.TEST: Cpu.tst,
    Op.TEST_EQUIVALENCE: Cpu.teq,
    Op.COMPARE: Cpu.cmp,
    Op.COMPARE_NEGATIVE: Cpu.cmn,
}

_MOVES: dict[DataProcessingOperation, Callable[..., None]] = {
    Op.MOVE: Cpu.mov,
    Op.BITWISE_NOT: Cpu.mvn,
}

_UNSUPPORTED: dict[DataProcessingOperation, str] = {
    Op.REVERSE_SUBTRACT_WITH_CARRY: "ReverseSubtractWithCarry currently not implemented",
    Op.MISCELLANEOUS_INSTRUCTION: "Miscellaneous instructions currently not implemented",
    Op.HALFWORD_MULTIPLY: "Multiplication currently not implemented",
    Op.MULTIPLY: "Multiplication currently not implemented",
}

_CONDITION_CHECKS: dict[Condition, Callable[[Cpu], bool]] = {
    Condition.EQ: lambda cpu: cpu.z,
    Condition.NE: lambda cpu: not cpu.z,
    Condition.CS: lambda cpu: cpu.c,
    Condition.CC: lambda cpu: not cpu.c,
    Condition.MI: lambda cpu: cpu.n,
    Condition.PL: lambda cpu: not cpu.n,
    Condition.VS: lambda cpu: cpu.v,
    Condition.VC: lambda cpu: not cpu.v,
    Condition.HI: lambda cpu: cpu.c and not cpu.z,
    Condition.LS: lambda cpu: not cpu.c or cpu.z,
    Condition.GE: lambda cpu: cpu.n == cpu.v,
    Condition.LT: lambda cpu: cpu.n != cpu.v,
    Condition.GT: lambda cpu: not cpu.z and cpu.n == cpu.v,
    Condition.LE: lambda cpu: cpu.z or cpu.n != cpu.v,
    Condition.AL: lambda cpu: True,
}


def _bit(word: int, index: int) -> bool:
    return bool(word >> index & 1)


def _shifted_register(word: int) -> tuple[RightHandOperand, BarrelShifterConfig]:
    operand = RightHandOperand.register(word & 0xF)
    config = BarrelShifterConfig(ShiftType(word >> 5 & 0x3), word >> 7 & 0x1F)
    return operand, config


def decode_data_processing(word: int) -> DataProcessingOperation:
    """Return the data processing operation encoded in ``word``."""
    word &= _WORD_MASK
    opcode = word >> 21 & 0xF
    if opcode < 8:
        return _LOW_OPERATIONS[opcode]
    if not _bit(word, 23) and not _bit(word, 20):
        if not _bit(word, 7):
            raise NotImplementedInstructionError(
                "Miscellaneous instructions not implemented"
            )
        return Op.HALFWORD_MULTIPLY
    return _HIGH_OPERATIONS[opcode - 8]


def condition_passed(cpu: Cpu, word: int) -> bool:
    """Whether the condition field of ``word`` holds for the CPU's flags."""
    code = (word & _WORD_MASK) >> FLAG_SHIFT
    try:
        condition = Condition(code)
    except ValueError:
        raise NotImplementedInstructionError(
            f"Unknown condition code 0x{code:x}"
        ) from None
    return bool(_CONDITION_CHECKS[condition](cpu))


def _execute_data_processing(cpu: Cpu, word: int) -> bool:
    operation = decode_data_processing(word)
    set_flags = _bit(word, 20)
    rn = get_register_from_int(word >> 16 & 0xF)
    rd = get_register_from_int(word >> 12 & 0xF)

    if _bit(word, 25):
        op2 = RightHandOperand.immediate(word & 0x7F)
        # Immediates rotate only by even amounts.
        shift = BarrelShifterConfig(ShiftType.ROTATE_RIGHT, (word >> 8 & 0x7) * 2)
    else:
        op2, shift = _shifted_register(word)

    if operation in _THREE_OPERAND:
        _THREE_OPERAND[operation](cpu, rd, rn, op2, shift, set_flags)
    elif operation in _COMPARISONS:
        _COMPARISONS[operation](cpu, rn, op2)
    elif operation in _MOVES:
        _MOVES[operation](cpu, rd, op2, shift, set_flags)
    elif operation in _UNSUPPORTED:
        raise NotImplementedInstructionError(_UNSUPPORTED[operation])
    else:
        raise NotImplementedInstructionError(f"Unknown operation {operation.value}")

    return rd == Register.PC


def _execute_load_store(cpu: Cpu, word: int) -> bool:
    rn = get_register_from_int(word >> 16 & 0xF)
    rt = get_register_from_int(word >> 12 & 0xF)

    pre_indexed = _bit(word, 24)
    indexing = IndexingMethod.PRE_INDEXED if pre_indexed else IndexingMethod.POST_INDEXED
    direction = OffsetDirection.UP if _bit(word, 23) else OffsetDirection.DOWN
    write_back = not pre_indexed or _bit(word, 21)
    quantity = TransferQuantity.BYTE if _bit(word, 22) else TransferQuantity.WORD

    if _bit(word, 25):
        offset, shift = _shifted_register(word)
    else:
        offset = RightHandOperand.immediate(word & 0xFFF)
        shift = BarrelShifterConfig(ShiftType.LOGICAL_LEFT, 0)

    transfer = cpu.ldr if _bit(word, 20) else cpu.str
    transfer(rt, rn, offset, write_back, quantity, direction, indexing, shift)

    return rt == Register.PC or (write_back and rn == Register.PC)


def _execute_block_transfer(cpu: Cpu, word: int) -> bool:
    load = _bit(word, 20)
    direction = OffsetDirection.UP if _bit(word, 23) else OffsetDirection.DOWN
    write_back = _bit(word, 21)
    indexing = (
        IndexingMethod.PRE_INDEXED if _bit(word, 24) else IndexingMethod.POST_INDEXED
    )
    base = get_register_from_int(word >> 16 & 0xF)
    registers = parse_register_list(word & 0xFFFF)

    transfer = cpu.ldm if load else cpu.stm
    transfer(base, write_back, direction, indexing, registers)

    popped_pc = load and Register.PC in registers
    return popped_pc or (write_back and base == Register.PC)


def execute_instruction(cpu: Cpu, word: int) -> bool:
    """Execute one instruction; return True if it set the program counter."""
    word &= _WORD_MASK
    if not condition_passed(cpu, word):
        return False

    group = word >> 26 & 0x3
    if group == 0b00:
        return _execute_data_processing(cpu, word)
    if group == 0b01:
        if _bit(word, 25) and (_bit(word, 24) or _bit(word, 4)):
            raise NotImplementedInstructionError(
                "Media instructions are not planned for now"
            )
        return _execute_load_store(cpu, word)
    if group == 0b10:
        if _bit(word, 25):
            offset = signed_extend(word & 0xFFF)
            if _bit(word, 24):
                cpu.bl(offset)
            else:
                cpu.b(offset)
            return True
        return _execute_block_transfer(cpu, word)

    if _bit(word, 25) and _bit(word, 24):
        cpu.swi()
        return False
    raise NotImplementedInstructionError(
        f"Coprocessor calls, instruction is {word:#x}"
    )


def next_instruction(cpu: Cpu) -> None:
    """Fetch and execute the instruction at the PC, then advance the PC."""
    word = cpu.get_memory_word(cpu.pc & _WORD_MASK)
    if not execute_instruction(cpu, word):
        cpu.pc = cpu.pc + 4


def run(cpu: Cpu) -> int:
    """Execute instructions until the program exits; return its exit code."""
    try:
        while True:
            next_instruction(cpu)
    except ProgramExit as exit_request:
        return exit_request.return_code