# armsim

armsim simulates a subset of the 32-bit ARM instruction set. It loads a
32-bit ARM ELF executable into 4 MiB of memory and runs it one instruction
at a time until the program exits.

## Installing

    pip install .

## Running a program

    armsim program.elf

armsim checks that the file is a 32-bit ARM ELF file. It then copies every
section that the file holds data for (`PROGBITS`) to that section's address,
sets the program counter to the entry point and the stack pointer to
`0x10000`, and starts running. Both little-endian and big-endian files load.
If the file cannot be read or is not a 32-bit ARM ELF file, armsim prints the
reason to standard error and exits with status 1.

Two system calls are handled, and `r7` selects between them:

- `1` (exit): stops the program. armsim prints
  `Internal program exited with code N`, where `N` is the value of `r0`.
- `4` (write): writes up to `r2` bytes starting at address `r1`, stopping at
  the first zero byte. When `r0` is 0 the bytes go to standard output, and to
  standard error otherwise.

Any other system call number is an error. When the program reaches an
instruction that is not supported, uses a system call that is not handled,
or reads or writes outside memory, armsim prints `Internal error:` and the
reason. Either way it ends with `Execution finished` and exits with status 0.

## Supported instructions

- Data processing: `AND`, `EOR`, `SUB`, `RSB`, `ADD`, `ADC`, `SBC`, `TST`,
  `TEQ`, `CMP`, `CMN`, `ORR`, `MOV`, `BIC`, `MVN`, with barrel-shifted
  register operands or rotated immediates.
- Single loads and stores: `LDR`, `LDRB`, `STR`, `STRB`, pre- or
  post-indexed, with write-back.
- Block transfers: `LDM` and `STM`.
- Branches: `B` and `BL`, with a 12-bit signed offset counted in
  instructions.
- Software interrupts: `SWI`.

All of these may carry a condition code (`EQ` through `AL`).

## What armsim does not do

- Multiplication, `RSC` as an encoded instruction, `BX`, `MRS`, `MSR`,
  media and coprocessor instructions are rejected with an error.
- Flags are worked out in a simplified way: after an arithmetic instruction
  the carry flag is set only when both operands are negative, and `ADC`,
  `SBC` and `RSC` do not read the carry flag.
- Immediate operands of data processing instructions use only the low
  seven bits of the immediate field.
- There is no debugger, tracing or interactive mode on the command line;
  `Cpu.dump_registers` is available from Python.

## Using it from Python

```python
from armsim.cpu import Cpu
from armsim.constants import Register
from armsim.decoder import run

cpu = Cpu(1024 * 1024, False)
cpu.set_memory(0x8000, program_bytes)
cpu.set_register(Register.PC, 0x8000)
cpu.set_register(Register.SP, 0x10000)
exit_code = run(cpu)
```

`Cpu` takes optional `stdout` and `stderr` text streams that the write system
call uses in place of the process's own.

- `armsim.elf.load_program` builds a `Cpu` from the contents of an ELF file;
  `armsim.elf.parse_header` reads just the file header and raises
  `ElfFormatError` for files it cannot load.
- `armsim.decoder.next_instruction` runs one instruction,
  `armsim.decoder.execute_instruction` runs a given instruction word, and
  `armsim.decoder.run` runs until the program exits and returns its exit code.
- The instructions are methods of `Cpu` (`add`, `sub`, `ldr`, `stm`, `b`, and
  so on; `and_` for `AND`), and `armsim.barrel_shifter` holds the shift
  operations they use.
- Errors derive from `armsim.exceptions.SimulatorError`; an exit system call
  raises `armsim.exceptions.ProgramExit`, which `run` turns into a return
  value.