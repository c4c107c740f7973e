"""Reading 32-bit ARM ELF executables into a simulated CPU."""

from __future__ import annotations

from dataclasses import dataclass

from armsim.constants import ELF_HEADER_SIZE, ELF_MAGIC_NUMBER, Register
from armsim.cpu import Cpu

DEFAULT_MEMORY_SIZE = 4 * 1024 * 1024
STACK_TOP = 0x10000

_ARM_MACHINE = 0x28
_SECTION_PROGBITS = 0x01


class ElfFormatError(ValueError):
    """The data is not a loadable 32-bit ARM ELF file."""


@dataclass(frozen=True)
class ElfHeader:
    """The parts of the ELF file header that the loader needs."""

    big_endian: bool
    entry: int
    section_header_offset: int
    section_header_entry_size: int
    section_header_count: int


def read_field(data: bytes, start: int, size: int, big_endian: bool) -> int:
    """Read an unsigned integer of ``size`` bytes at ``start``."""
    field = data[start:start + size]
    if len(field) != size:
        raise ElfFormatError(f"truncated field at offset {start:#x}")
    return int.from_bytes(field, "big" if big_endian else "little")


def parse_header(data: bytes) -> ElfHeader:
    """Check and read the ELF file header."""
    if len(data) < ELF_HEADER_SIZE or data[:4] != ELF_MAGIC_NUMBER:
        raise ElfFormatError("is not a valid ELF File")
    if data[4] != 1:
        raise ElfFormatError("was compiled for 64bit, which is not supported")
    if _ARM_MACHINE not in (data[0x12], data[0x13]):
        raise ElfFormatError("was not built for ARM")

    big_endian = data[0x5] == 2
    return ElfHeader(
        big_endian=big_endian,
        entry=read_field(data, 0x18, 4, big_endian),
        section_header_offset=read_field(data, 0x20, 4, big_endian),
        section_header_entry_size=read_field(data, 0x2E, 2, big_endian),
        section_header_count=read_field(data, 0x30, 2, big_endian),
    )


def load_program(data: bytes, memory_size: int = DEFAULT_MEMORY_SIZE) -> Cpu:
    """Build a CPU with every PROGBITS section of ``data`` loaded into memory."""
    header = parse_header(data)
    cpu = Cpu(memory_size, header.big_endian)
    cpu.pc = header.entry
    cpu.set_register(Register.SP, STACK_TOP)

    order = header.big_endian
    for index in range(header.section_header_count):
        start = header.section_header_offset + index * header.section_header_entry_size
        if read_field(data, start + 0x04, 4, order) != _SECTION_PROGBITS:
            continue
        address = read_field(data, start + 0x0C, 4, order)
        offset = read_field(data, start + 0x10, 4, order)
        size = read_field(data, start + 0x14, 4, order)
        cpu.set_memory(address, data[offset:offset + size])
    return cpu