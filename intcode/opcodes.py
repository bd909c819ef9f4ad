"""
Intcode Instruction Set and Program Parser

Opcode table, instruction decoding, and the comma-separated program
text format.
"""

from enum import IntEnum
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Sequence, Tuple
import re

from .errors import ParseError, UnknownOpcode, InvalidAddressingMode


class OpCode(IntEnum):
    """Intcode operation codes."""
    ADD = 1            # Add - dst = a + b
    MUL = 2            # Multiply - dst = a * b
    INPUT = 3          # Input - dst = next value from input channel
    OUTPUT = 4         # Output - send a to output channel
    JUMP_IF_TRUE = 5   # Jump to b if a is non-zero
    JUMP_IF_FALSE = 6  # Jump to b if a is zero
    LESS_THAN = 7      # dst = 1 if a < b else 0
    EQUALS = 8         # dst = 1 if a == b else 0
    ADJUST_BASE = 9    # relative_base += a
    HALT = 99          # Halt - stop and close output


class AddressMode(IntEnum):
    """Addressing modes for operands."""
    POSITION = 0   # Operand is an address
    IMMEDIATE = 1  # Operand is the value itself
    RELATIVE = 2   # Operand is an offset from the relative base

    @property
    def prefix(self) -> str:
        return _MODE_PREFIXES[self]


_MODE_PREFIXES = {
    AddressMode.POSITION: "$",
    AddressMode.IMMEDIATE: "#",
    AddressMode.RELATIVE: "~",
}


OPERAND_COUNTS: Mapping[OpCode, int] = MappingProxyType({
    OpCode.ADD: 3,
    OpCode.MUL: 3,
    OpCode.INPUT: 1,
    OpCode.OUTPUT: 1,
    OpCode.JUMP_IF_TRUE: 2,
    OpCode.JUMP_IF_FALSE: 2,
    OpCode.LESS_THAN: 3,
    OpCode.EQUALS: 3,
    OpCode.ADJUST_BASE: 1,
    OpCode.HALT: 0,
})

MNEMONICS: Mapping[OpCode, str] = MappingProxyType({
    OpCode.ADD: "ADD",
    OpCode.MUL: "MUL",
    OpCode.INPUT: "IN",
    OpCode.OUTPUT: "OUT",
    OpCode.JUMP_IF_TRUE: "JNZ",
    OpCode.JUMP_IF_FALSE: "JZ",
    OpCode.LESS_THAN: "LT",
    OpCode.EQUALS: "EQ",
    OpCode.ADJUST_BASE: "ARB",
    OpCode.HALT: "HLT",
})


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction: opcode plus one addressing mode per operand."""
    opcode: OpCode
    modes: Tuple[AddressMode, ...] = ()

    @property
    def operand_count(self) -> int:
        return OPERAND_COUNTS[self.opcode]

    @property
    def size(self) -> int:
        """Words occupied by the instruction, opcode included."""
        return self.operand_count + 1

    def __str__(self) -> str:
        modes = ",".join(mode.name for mode in self.modes)
        return f"{MNEMONICS[self.opcode]}({modes})"


def decode(value: int, address: int = 0) -> Instruction:
    """
    Decode an instruction word.

    The opcode is the low two decimal digits; the remaining digits give
    one addressing mode per operand, least-significant first. Missing
    digits mean Position mode.

    Args:
        value: The raw instruction word
        address: Where the word was fetched from (for error reporting)

    Returns:
        The decoded Instruction
    """
    if value < 0:
        raise UnknownOpcode(value, address)

    try:
        opcode = OpCode(value % 100)
    except ValueError:
        raise UnknownOpcode(value % 100, address) from None

    modes = []
    digits = value // 100
    for _ in range(OPERAND_COUNTS[opcode]):
        digit = digits % 10
        try:
            modes.append(AddressMode(digit))
        except ValueError:
            raise InvalidAddressingMode(digit, value, address) from None
        digits //= 10

    return Instruction(opcode=opcode, modes=tuple(modes))


_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_program(source: str) -> List[int]:
    """Parse comma-separated program text into a list of integers."""
    text = source.strip()
    if not text:
        raise ParseError("Empty program")

    program = []
    for index, token in enumerate(text.split(",")):
        if not _INTEGER.fullmatch(token):
            raise ParseError(
                f"Invalid integer {token!r} at position {index}",
                token=token,
                index=index,
            )
        program.append(int(token))

    return program


def program_to_string(program: Sequence[int]) -> str:
    """Convert a program back to comma-separated text."""
    return ",".join(str(value) for value in program)


def disassemble(program: Sequence[int]) -> List[str]:
    """
    Render a program as an instruction listing.

    Words that do not decode, or whose operands run past the end of the
    program, are shown as DATA and the listing moves on by one word.
    """
    lines = []
    address = 0

    while address < len(program):
        value = program[address]
        try:
            instr = decode(value, address)
        except (UnknownOpcode, InvalidAddressingMode):
            instr = None

        if instr is None or address + instr.size > len(program):
            lines.append(f"{address:04d}: DATA {value}")
            address += 1
            continue

        operands = [
            f"{mode.prefix}{program[address + 1 + i]}"
            for i, mode in enumerate(instr.modes)
        ]
        text = MNEMONICS[instr.opcode]
        if operands:
            text += " " + ", ".join(operands)
        lines.append(f"{address:04d}: {text}")
        address += instr.size

    return lines


# Well-known example programs
PROGRAMS = {
    # Halts with 3500 at address 0
    "adder": "1,9,10,3,2,3,11,0,99,30,40,50",

    # Outputs whatever it reads
    "echo": "3,0,4,0,99",

    # Outputs 1 if the input equals 8, else 0 (position mode)
    "equals-8": "3,9,8,9,10,9,4,9,99,-1,8",

    # Outputs 1 if the input is less than 8, else 0 (immediate mode)
    "less-than-8": "3,3,1107,-1,8,3,4,3,99",

    # Outputs 0 if the input was zero, else 1 (jumps)
    "is-nonzero": "3,12,6,12,15,1,13,14,13,4,13,99,-1,0,1,9",

    # Outputs 999 below 8, 1000 at 8, 1001 above 8
    "compare-8": (
        "3,21,1008,21,8,20,1005,20,22,107,8,21,20,1006,20,31,"
        "1106,0,36,98,0,0,1002,21,125,20,4,20,1105,1,46,104,"
        "999,1105,1,46,1101,1000,1,20,4,20,1105,1,46,98,99"
    ),

    # Outputs a copy of itself
    "quine": "109,1,204,-1,1001,100,1,100,1008,100,16,101,1006,101,0,99",

    # Outputs a 16-digit number
    "big-product": "1102,34915192,34915192,7,4,7,99,0",

    # Outputs the large number in the middle
    "big-literal": "104,1125899906842624,99",

    # Amplifier: reads phase then signal, outputs phase + 10 * signal
    "amplifier": "3,15,3,16,1002,16,10,16,1,16,15,15,4,15,99,0,0",

    # Feedback amplifier: loops until its counter runs out
    "feedback-amplifier": (
        "3,26,1001,26,-4,26,3,27,1002,27,2,27,1,27,26,27,4,27,"
        "1001,28,-1,28,1005,28,6,99,0,0,5"
    ),
}
