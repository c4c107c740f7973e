"""The simulated processor: registers, flags, memory and instructions."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from armsim.barrel_shifter import execute_config
from armsim.constants import (
    BarrelShifterConfig,
    IndexingMethod,
    OffsetDirection,
    OperandType,
    Register,
    RightHandOperand,
    TransferQuantity,
)
from armsim.exceptions import (
    InvalidMemoryAccessError,
    NotImplementedInstructionError,
    ProgramExit,
)

_WORD_MASK = 0xFFFFFFFF
_DEFAULT_SHIFT = BarrelShifterConfig()

_SYSCALL_EXIT = 1
_SYSCALL_WRITE = 4


def _to_signed32(value: int) -> int:
    value &= _WORD_MASK
    return value - (1 << 32) if value & 0x80000000 else value


def _is_negative(value: int) -> bool:
    return bool(value & 0x80000000)


def _has_overflow(result: int, v1: int, v2: int) -> bool:
    if _is_negative(v1) != _is_negative(v2):
        return False
    return _is_negative(result) != _is_negative(v1)


def _negate(value: int) -> int:
    return _to_signed32(-value)


def _offset_address(base: int, offset: int, direction: OffsetDirection) -> int:
    if direction == OffsetDirection.UP:
        return (base + offset) & _WORD_MASK
    return (base - offset) & _WORD_MASK


class Cpu:
    """A 32-bit ARM core with sixteen registers, NZCV flags and flat memory.

    Register values are held as signed 32-bit integers; addresses are
    treated as unsigned 32-bit integers.
    """

    def __init__(
        self,
        memory_size: int,
        big_endian: bool = True,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.memory_size = memory_size
        self.big_endian = big_endian
        self.stdout = stdout
        self.stderr = stderr
        self._registers = [0] * 16
        self._memory = bytearray(memory_size)
        self.n = False
        self.z = False
        self.c = False
        self.v = False

    # ------------------------------------------------------------------
    # state access

    @property
    def pc(self) -> int:
        """Address of the current instruction, without the pipeline offset."""
        return self._registers[Register.PC]

    @pc.setter
    def pc(self, value: int) -> None:
        self._registers[Register.PC] = _to_signed32(value)

    def _out(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout

    def _err(self) -> TextIO:
        return self.stderr if self.stderr is not None else sys.stderr

    def dump_registers(self) -> None:
        """Print every register and the flags."""
        out = self._out()
        out.write("ARM Registers:\n")
        for index, value in enumerate(self._registers):
            suffix = {14: "/lr", 15: "/pc"}.get(index, "")
            unsigned = value & _WORD_MASK
            shown = f"{unsigned:#x}" if unsigned else "0"
            out.write(f"r{index}{suffix}:\t{shown}\n")
        out.write("Flags:\n")
        out.write(
            f"N: {int(self.n)}, Z: {int(self.z)}, "
            f"C: {int(self.c)}, V: {int(self.v)}\n"
        )

    def get_register(self, register: Register) -> int:
        """Read a register; the PC reads as the current instruction plus 8."""
        register = Register(register)
        if register == Register.PC:
            return _to_signed32(self._registers[Register.PC] + 8)
        return self._registers[register]

    def set_register(self, register: Register, value: int) -> None:
        self._registers[Register(register)] = _to_signed32(value)

    def _check_word_address(self, address: int) -> None:
        if address >= (self.memory_size - 4) & _WORD_MASK:
            raise InvalidMemoryAccessError(address)

    def get_memory_word(self, address: int) -> int:
        """Read a 32-bit word in the CPU's byte order."""
        address &= _WORD_MASK
        self._check_word_address(address)
        order = "big" if self.big_endian else "little"
        raw = int.from_bytes(self._memory[address:address + 4], order)
        return _to_signed32(raw)

    def set_memory_word(self, address: int, word: int) -> None:
        """Write a 32-bit word in the CPU's byte order."""
        address &= _WORD_MASK
        self._check_word_address(address)
        order = "big" if self.big_endian else "little"
        self._memory[address:address + 4] = (word & _WORD_MASK).to_bytes(4, order)

    def get_memory_byte(self, address: int) -> int:
        address &= _WORD_MASK
        if address >= self.memory_size:
            raise InvalidMemoryAccessError(address)
        return self._memory[address]

    def set_memory_byte(self, address: int, value: int) -> None:
        address &= _WORD_MASK
        if address >= self.memory_size:
            raise InvalidMemoryAccessError(address)
        self._memory[address] = value & 0xFF

    def set_memory(self, start_address: int, data: bytes) -> None:
        """Copy ``data`` into memory byte by byte from ``start_address``."""
        for index, byte in enumerate(data):
            self.set_memory_byte(start_address + index, byte)

    def operand_value(self, operand: RightHandOperand) -> int:
        """Value of an immediate, or the contents of a register operand."""
        if operand.type == OperandType.IMMEDIATE:
            return operand.value
        return self.get_register(Register(operand.value))

    # ------------------------------------------------------------------
    # helpers shared by the instructions

    def _shifted(self, op2: RightHandOperand, shift_config: BarrelShifterConfig):
        return execute_config(self.operand_value(op2), shift_config)

    def _set_arithmetic_flags(self, result: int, v1: int, v2: int) -> None:
        self.n = _is_negative(result)
        self.z = result == 0
        self.c = _is_negative(v1) and _is_negative(v2)
        self.v = _has_overflow(result, v1, v2)

    def _set_logical_flags(self, result: int, shift_result) -> None:
        self.n = _is_negative(result)
        self.z = result == 0
        if shift_result.affect_carry:
            self.c = shift_result.carry

    def _add_into(self, rd, v1, v2, set_flags, extra=0) -> None:
        result = _to_signed32(v1 + v2 + extra)
        self.set_register(rd, result)
        if set_flags:
            self._set_arithmetic_flags(result, v1, v2)

    # ------------------------------------------------------------------
    # instructions

    def adc(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        v2 = self._shifted(op2, shift_config).value
        self._add_into(rd, v1, v2, set_flags, extra=1)

    def add(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        v2 = self._shifted(op2, shift_config).value
        self._add_into(rd, v1, v2, set_flags)

    def and_(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        result = _to_signed32(v1 & shift_result.value)
        self.set_register(rd, result)
        if set_flags:
            self._set_logical_flags(result, shift_result)

    def b(self, offset: int) -> None:
        """Branch by ``offset`` instructions relative to the read PC."""
        target = (self.get_register(Register.PC) + offset * 4) & _WORD_MASK
        self.set_register(Register.PC, target)

    def bic(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        result = _to_signed32(v1 & ~shift_result.value)
        self.set_register(rd, result)
        if set_flags:
            self._set_logical_flags(result, shift_result)

    def bl(self, offset: int) -> None:
        """Branch and store the address of the next instruction in LR."""
        self.set_register(Register.LR, self._registers[Register.PC] + 4)
        self.b(offset)

    def bx(self, address: RightHandOperand) -> None:
        """Resolve the branch target operand, then reject the unsupported BX."""
        self.operand_value(address)
        raise NotImplementedInstructionError("BX")

    def cmn(self, rn, op2, shift_config=_DEFAULT_SHIFT) -> None:
        v1 = self.get_register(rn)
        v2 = self._shifted(op2, shift_config).value
        self._set_arithmetic_flags(_to_signed32(v1 + v2), v1, v2)

    def cmp(self, rn, op2, shift_config=_DEFAULT_SHIFT) -> None:
        v1 = self.get_register(rn)
        v2 = _negate(self._shifted(op2, shift_config).value)
        self._set_arithmetic_flags(_to_signed32(v1 + v2), v1, v2)

    def eor(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        result = _to_signed32(v1 ^ shift_result.value)
        self.set_register(rd, result)
        if set_flags:
            self._set_logical_flags(result, shift_result)

    def ldm(
        self,
        base: Register,
        write_back: bool,
        direction: OffsetDirection,
        indexing: IndexingMethod,
        registers: Iterable[Register],
    ) -> None:
        """Load several registers, highest numbered first."""
        address = self.get_register(base) & _WORD_MASK
        step = 4 if direction == OffsetDirection.UP else -4
        for register in reversed(list(registers)):
            if indexing == IndexingMethod.PRE_INDEXED:
                address = (address + step) & _WORD_MASK
            self.set_register(register, self.get_memory_word(address))
            if indexing == IndexingMethod.POST_INDEXED:
                address = (address + step) & _WORD_MASK
        if write_back:
            self.set_register(base, address)

    def ldr(
        self,
        rt: Register,
        base: Register,
        offset: RightHandOperand,
        write_back: bool,
        quantity: TransferQuantity,
        direction: OffsetDirection,
        indexing: IndexingMethod,
        shift_config: BarrelShifterConfig = _DEFAULT_SHIFT,
    ) -> None:
        base_address = self.get_register(base) & _WORD_MASK
        amount = self._shifted(offset, shift_config).value
        moved = _offset_address(base_address, amount, direction)

        target = moved if indexing == IndexingMethod.PRE_INDEXED else base_address
        if quantity == TransferQuantity.WORD:
            value = self.get_memory_word(target)
        else:
            value = self.get_memory_byte(target)
        self.set_register(rt, value)

        if write_back:
            self.set_register(base, moved)

    def mov(self, rd, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        shift_result = self._shifted(op2, shift_config)
        if set_flags and shift_result.affect_carry:
            self.c = shift_result.carry
        self.set_register(rd, shift_result.value)

    def mrs(self, rd: Register) -> None:
        """Validate the destination register, then reject the unsupported MRS."""
        Register(rd)
        raise NotImplementedInstructionError("MRS")

    def msr(self, rn: Register) -> None:
        """Validate the source register, then reject the unsupported MSR."""
        self.get_register(rn)
        raise NotImplementedInstructionError("MSR")

    def mvn(self, rd, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        shift_result = self._shifted(op2, shift_config)
        self.set_register(rd, ~shift_result.value)
        if set_flags and shift_result.affect_carry:
            self.c = shift_result.carry

    def orr(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        result = _to_signed32(v1 | shift_result.value)
        self.set_register(rd, result)
        if set_flags:
            self._set_logical_flags(result, shift_result)

    def rsb(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = _negate(self.get_register(rn))
        v2 = self._shifted(op2, shift_config).value
        self._add_into(rd, v1, v2, set_flags)

    def rsc(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = _to_signed32(_negate(self.get_register(rn)) + 1)
        v2 = self._shifted(op2, shift_config).value
        self._add_into(rd, v1, v2, set_flags)

    def sbc(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        v2 = _to_signed32(_negate(self._shifted(op2, shift_config).value) + 1)
        self._add_into(rd, v1, v2, set_flags)

    def stm(
        self,
        base: Register,
        write_back: bool,
        direction: OffsetDirection,
        indexing: IndexingMethod,
        registers: Iterable[Register],
    ) -> None:
        """Store several registers, lowest numbered first."""
        address = self.get_register(base) & _WORD_MASK
        step = 4 if direction == OffsetDirection.UP else -4
        for register in registers:
            value = self.get_register(register)
            if indexing == IndexingMethod.PRE_INDEXED:
                address = (address + step) & _WORD_MASK
            self.set_memory_word(address, value)
            if indexing == IndexingMethod.POST_INDEXED:
                address = (address + step) & _WORD_MASK
        if write_back:
            self.set_register(base, address)

    def str(
        self,
        rt: Register,
        base: Register,
        offset: RightHandOperand,
        write_back: bool,
        quantity: TransferQuantity,
        direction: OffsetDirection,
        indexing: IndexingMethod,
        shift_config: BarrelShifterConfig = _DEFAULT_SHIFT,
    ) -> None:
        base_address = self.get_register(base) & _WORD_MASK
        amount = self._shifted(offset, shift_config).value
        if Register(base) == Register.PC:
            # PC-relative stores land one word further on.
            amount += 4
        moved = _offset_address(base_address, amount, direction)

        target = moved if indexing == IndexingMethod.PRE_INDEXED else base_address
        value = self.get_register(rt)
        if quantity == TransferQuantity.WORD:
            self.set_memory_word(target, value)
        else:
            self.set_memory_byte(target, value)

        if write_back:
            self.set_register(base, moved)

    def sub(self, rd, rn, op2, shift_config=_DEFAULT_SHIFT, set_flags=False) -> None:
        v1 = self.get_register(rn)
        v2 = _negate(self._shifted(op2, shift_config).value)
        self._add_into(rd, v1, v2, set_flags)

    def swi(self) -> None:
        """Handle a system call selected by r7: write (4) or exit (1)."""
        syscall = self.get_register(Register.R7)
        if syscall == _SYSCALL_WRITE:
            target = self._out() if self.get_register(Register.R0) == 0 else self._err()
            address = self.get_register(Register.R1) & _WORD_MASK
            length = self.get_register(Register.R2)
            text = bytearray()
            for _ in range(max(length, 0)):
                byte = self.get_memory_byte(address)
                if byte == 0:
                    break
                text.append(byte)
                address = (address + 1) & _WORD_MASK
            target.write(text.decode("utf-8", errors="replace"))
        elif syscall == _SYSCALL_EXIT:
            raise ProgramExit(self.get_register(Register.R0))
        else:
            raise NotImplementedInstructionError(
                f"Syscall {syscall} not implemented"
            )

    def swp(self, rd: Register, rs: Register, base: Register) -> None:
        """Load a word into ``rd`` and store ``rs`` at the same address."""
        address = self.get_register(base) & _WORD_MASK
        self.set_register(rd, self.get_memory_word(address))
        self.set_memory_word(address, self.get_register(rs))

    def teq(self, rn, op2, shift_config=_DEFAULT_SHIFT) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        self._set_logical_flags(_to_signed32(v1 ^ shift_result.value), shift_result)

    def tst(self, rn, op2, shift_config=_DEFAULT_SHIFT) -> None:
        v1 = self.get_register(rn)
        shift_result = self._shifted(op2, shift_config)
        self._set_logical_flags(_to_signed32(v1 & shift_result.value), shift_result)