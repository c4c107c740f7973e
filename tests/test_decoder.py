import io

import pytest

from armsim.constants import DataProcessingOperation as Op
from armsim.constants import Register
from armsim.cpu import Cpu
from armsim.decoder import (
    condition_passed,
    decode_data_processing,
    execute_instruction,
    next_instruction,
    run,
)
from armsim.exceptions import NotImplementedInstructionError, ProgramExit

AL = 0xE
EQ = 0x0
NE = 0x1
SWI = 0xEF000000


def dp_imm(opcode, rd, rn, imm, s=0, rot=0, cond=AL):
    return (cond << 28 | 1 << 25 | opcode << 21 | s << 20 | rn << 16
            | rd << 12 | rot << 8 | imm)


def dp_reg(opcode, rd, rn, rm, shift_type=0, amount=0, s=0, cond=AL):
    return (cond << 28 | opcode << 21 | s << 20 | rn << 16 | rd << 12
            | amount << 7 | shift_type << 5 | rm)


def single(load, rt, rn, imm, pre=1, up=1, write=0, byte=0, cond=AL):
    return (cond << 28 | 1 << 26 | pre << 24 | up << 23 | byte << 22
            | write << 21 | load << 20 | rn << 16 | rt << 12 | imm)


def block(load, rn, reglist, pre, up, write, cond=AL):
    return (cond << 28 | 0b100 << 25 | pre << 24 | up << 23 | write << 21
            | load << 20 | rn << 16 | reglist)


def branch(offset, link=0, cond=AL):
    return cond << 28 | 0b101 << 25 | link << 24 | (offset & 0xFFF)


@pytest.fixture
def cpu():
    return Cpu(0x1000)


@pytest.mark.parametrize(
    "opcode, expected",
    [
        (0, Op.BITWISE_AND), (1, Op.BITWISE_EOR), (2, Op.SUBTRACT),
        (3, Op.REVERSE_SUBTRACT), (4, Op.ADD), (5, Op.ADD_WITH_CARRY),
        (6, Op.SUBTRACT_WITH_CARRY), (7, Op.REVERSE_SUBTRACT_WITH_CARRY),
        (8, Op.TEST), (9, Op.TEST_EQUIVALENCE), (10, Op.COMPARE),
        (11, Op.COMPARE_NEGATIVE), (12, Op.BITWISE_OR), (13, Op.MOVE),
        (14, Op.BITWISE_BIT_CLEAR), (15, Op.BITWISE_NOT),
    ],
)
def test_decode_data_processing(opcode, expected):
    assert decode_data_processing(dp_imm(opcode, 0, 0, 1, s=1)) is expected


def test_decode_halfword_multiply_when_bit7_set():
    word = dp_reg(8, 0, 0, 0) | 1 << 7
    assert decode_data_processing(word) is Op.HALFWORD_MULTIPLY


def test_decode_miscellaneous_raises():
    with pytest.raises(NotImplementedInstructionError):
        decode_data_processing(dp_reg(8, 0, 0, 0))


def test_condition_always(cpu):
    assert condition_passed(cpu, dp_imm(13, 0, 0, 1))


def test_condition_eq_follows_zero_flag(cpu):
    word = dp_imm(13, 0, 0, 1, cond=EQ)
    assert not condition_passed(cpu, word)
    cpu.z = True
    assert condition_passed(cpu, word)


def test_unknown_condition_raises(cpu):
    with pytest.raises(NotImplementedInstructionError, match="condition code 0xf"):
        condition_passed(cpu, dp_imm(13, 0, 0, 1, cond=0xF))


def test_mov_immediate(cpu):
    assert execute_instruction(cpu, dp_imm(13, 0, 0, 42)) is False
    assert cpu.get_register(Register.R0) == 42


def test_mov_immediate_rotated(cpu):
    execute_instruction(cpu, dp_imm(13, 0, 0, 1, rot=1))
    assert cpu.get_register(Register.R0) == 1 << 30


def test_mov_shifted_register(cpu):
    cpu.set_register(Register.R1, 3)
    execute_instruction(cpu, dp_reg(13, 0, 0, 1, shift_type=0, amount=4))
    assert cpu.get_register(Register.R0) == 3 << 4


def test_add_immediate(cpu):
    cpu.set_register(Register.R1, 10)
    execute_instruction(cpu, dp_imm(4, 2, 1, 7))
    assert cpu.get_register(Register.R2) == 10 + 7


def test_sub_sets_zero_flag(cpu):
    cpu.set_register(Register.R1, 5)
    execute_instruction(cpu, dp_imm(2, 0, 1, 5, s=1))
    assert cpu.get_register(Register.R0) == 0
    assert cpu.z is True


def test_compare_then_conditional_move(cpu):
    cpu.set_register(Register.R1, 9)
    execute_instruction(cpu, dp_imm(10, 0, 1, 9, s=1))
    assert cpu.z is True
    execute_instruction(cpu, dp_imm(13, 2, 0, 1, cond=NE))
    assert cpu.get_register(Register.R2) == 0
    execute_instruction(cpu, dp_imm(13, 3, 0, 1, cond=EQ))
    assert cpu.get_register(Register.R3) == 1


def test_skipped_instruction_changes_nothing(cpu):
    assert execute_instruction(cpu, dp_imm(13, 0, 0, 5, cond=EQ)) is False
    assert cpu.get_register(Register.R0) == 0


def test_writing_pc_reports_branch(cpu):
    assert execute_instruction(cpu, dp_imm(13, 15, 0, 16)) is True
    assert cpu.pc == 16


def test_rsc_not_implemented(cpu):
    with pytest.raises(NotImplementedInstructionError, match="ReverseSubtractWithCarry"):
        execute_instruction(cpu, dp_imm(7, 0, 0, 1))


def test_store_and_load_round_trip(cpu):
    cpu.set_register(Register.R1, 0x100)
    cpu.set_register(Register.R0, -123456)
    assert execute_instruction(cpu, single(0, 0, 1, 4)) is False
    assert execute_instruction(cpu, single(1, 2, 1, 4)) is False
    assert cpu.get_register(Register.R2) == -123456
    assert cpu.get_register(Register.R1) == 0x100


def test_post_indexed_load_writes_back(cpu):
    cpu.set_register(Register.R1, 0x100)
    cpu.set_memory_byte(0x100, 0x7A)
    execute_instruction(cpu, single(1, 2, 1, 4, pre=0, byte=1))
    assert cpu.get_register(Register.R2) == 0x7A
    assert cpu.get_register(Register.R1) == 0x100 + 4


def test_media_instruction_raises(cpu):
    word = AL << 28 | 0b011 << 25 | 1 << 4
    with pytest.raises(NotImplementedInstructionError, match="Media"):
        execute_instruction(cpu, word)


def test_branch_forward(cpu):
    cpu.pc = 0x100
    assert execute_instruction(cpu, branch(2)) is True
    assert cpu.pc == 0x100 + 8 + 2 * 4


def test_branch_backward(cpu):
    cpu.pc = 0x100
    execute_instruction(cpu, branch(-2))
    assert cpu.pc == 0x100


def test_branch_with_link(cpu):
    cpu.pc = 0x100
    execute_instruction(cpu, branch(1, link=1))
    assert cpu.get_register(Register.LR) == 0x100 + 4
    assert cpu.pc == 0x100 + 8 + 4


def test_push_and_pop_round_trip(cpu):
    cpu.set_register(Register.SP, 0x800)
    cpu.set_register(Register.R0, 11)
    cpu.set_register(Register.R1, -22)
    assert execute_instruction(cpu, block(0, 13, 0b11, pre=1, up=0, write=1)) is False
    assert cpu.get_register(Register.SP) == 0x800 - 8
    cpu.set_register(Register.R0, 0)
    cpu.set_register(Register.R1, 0)
    execute_instruction(cpu, block(1, 13, 0b11, pre=0, up=1, write=1))
    assert cpu.get_register(Register.R0) == 11
    assert cpu.get_register(Register.R1) == -22
    assert cpu.get_register(Register.SP) == 0x800


def test_pop_pc_reports_branch(cpu):
    cpu.set_register(Register.SP, 0x800)
    cpu.set_memory_word(0x800, 0x200)
    assert execute_instruction(cpu, block(1, 13, 1 << 15, pre=0, up=1, write=1)) is True
    assert cpu.pc == 0x200


def test_swi_exit(cpu):
    cpu.set_register(Register.R7, 1)
    cpu.set_register(Register.R0, 3)
    with pytest.raises(ProgramExit) as info:
        execute_instruction(cpu, SWI)
    assert info.value.return_code == 3


def test_coprocessor_raises(cpu):
    with pytest.raises(NotImplementedInstructionError, match="Coprocessor"):
        execute_instruction(cpu, 0xEE000000)


def test_next_instruction_advances_pc(cpu):
    cpu.set_memory_word(0, dp_imm(13, 0, 0, 5))
    next_instruction(cpu)
    assert cpu.pc == 4
    assert cpu.get_register(Register.R0) == 5


def test_next_instruction_follows_branch(cpu):
    cpu.set_memory_word(0, branch(0))
    next_instruction(cpu)
    assert cpu.pc == 8


@pytest.mark.parametrize("big_endian", [True, False])
def test_run_returns_exit_code(big_endian):
    cpu = Cpu(0x1000, big_endian)
    program = [dp_imm(13, 0, 0, 7), dp_imm(13, 7, 0, 1), SWI]
    for index, word in enumerate(program):
        cpu.set_memory_word(index * 4, word)
    assert run(cpu) == 7


def test_run_write_syscall():
    out = io.StringIO()
    cpu = Cpu(0x1000, stdout=out)
    cpu.set_memory(0x200, b"hey\0")
    cpu.set_register(Register.R1, 0x200)
    cpu.set_register(Register.R2, 10)
    program = [
        dp_imm(13, 0, 0, 0), dp_imm(13, 7, 0, 4), SWI,
        dp_imm(13, 0, 0, 0), dp_imm(13, 7, 0, 1), SWI,
    ]
    for index, word in enumerate(program):
        cpu.set_memory_word(index * 4, word)
    assert run(cpu) == 0
    assert out.getvalue() == "hey"