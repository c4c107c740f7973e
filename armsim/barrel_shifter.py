"""The barrel shifter applied to the second operand of an instruction.

Values are 32-bit signed integers; right shifts of negative values keep
their sign, as they do in the simulated data path.
"""

from __future__ import annotations

from collections.abc import Callable

from armsim.constants import BarrelShifterConfig, ShiftResult, ShiftType

_WORD_MASK = 0xFFFFFFFF


def _to_signed32(value: int) -> int:
    value &= _WORD_MASK
    return value - (1 << 32) if value & 0x80000000 else value


def _bit(value: int, index: int) -> bool:
    return bool(value >> (index % 32) & 1)


def _check_amount(amount: int) -> None:
    if not 0 <= amount <= 32:
        raise ValueError(f"shift amount {amount} outside 0..32")


def logical_shift_left(value: int, amount: int) -> ShiftResult:
    """Shift left; the carry is the last bit shifted out."""
    _check_amount(amount)
    value = _to_signed32(value)
    if amount == 0:
        return ShiftResult(value, False, True)
    carry = _bit(value, 32 - amount)
    return ShiftResult(_to_signed32(value << amount), carry)


def logical_shift_right(value: int, amount: int) -> ShiftResult:
    """Shift right; an amount of 0 stands for 32."""
    _check_amount(amount)
    value = _to_signed32(value)
    if amount == 0:
        amount = 32
    carry = _bit(value, amount - 1)
    return ShiftResult(_to_signed32(value >> amount), carry)


def arithmetic_shift_right(value: int, amount: int) -> ShiftResult:
    """Shift right, filling the vacated bits with the sign bit."""
    _check_amount(amount)
    value = _to_signed32(value)
    carry = _bit(value, amount - 1)
    return ShiftResult(_to_signed32(value >> amount), carry)


def rotate_right(value: int, amount: int) -> ShiftResult:
    """Rotate right; bits leaving the bottom re-enter at the top."""
    _check_amount(amount)
    value = _to_signed32(value)
    carry = _bit(value, amount - 1)
    result = (value >> amount) | (value << (32 - amount))
    return ShiftResult(_to_signed32(result), carry)


_SHIFTS: dict[ShiftType, Callable[[int, int], ShiftResult]] = {
    ShiftType.LOGICAL_LEFT: logical_shift_left,
    ShiftType.LOGICAL_RIGHT: logical_shift_right,
    ShiftType.ARITHMETIC_RIGHT: arithmetic_shift_right,
    ShiftType.ROTATE_RIGHT: rotate_right,
}


def execute_config(value: int, config: BarrelShifterConfig) -> ShiftResult:
    """Apply the shift described by ``config`` to ``value``."""
    shift = _SHIFTS.get(config.shift_type)
    if shift is None:
        return ShiftResult(0, False)
    return shift(value, config.amount)