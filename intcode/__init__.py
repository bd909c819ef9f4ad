"""
Intcode - an integer-program virtual machine.

Programs are comma-separated signed integers run by a fetch-decode-execute
engine with Position, Immediate and Relative addressing. Each machine can
run on its own thread, talking to the outside world only through its
input and output channels.
"""

from .errors import (
    IntcodeError,
    ParseError,
    UnknownOpcode,
    InvalidAddressingMode,
    InvalidWriteTarget,
    NegativeAddress,
    ChannelClosed,
    ChannelTimeout,
    JoinTimeout,
    StepLimitExceeded,
)
from .opcodes import (
    OpCode,
    AddressMode,
    Instruction,
    OPERAND_COUNTS,
    PROGRAMS,
    decode,
    parse_program,
    program_to_string,
    disassemble,
)
from .memory import Memory
from .channel import Channel
from .machine import Machine, MachineHandle, MachineState, run_program
from .pipeline import Pipeline, run_chain
from .config import IntcodeConfig

__all__ = [
    "IntcodeError",
    "ParseError",
    "UnknownOpcode",
    "InvalidAddressingMode",
    "InvalidWriteTarget",
    "NegativeAddress",
    "ChannelClosed",
    "ChannelTimeout",
    "JoinTimeout",
    "StepLimitExceeded",
    "OpCode",
    "AddressMode",
    "Instruction",
    "OPERAND_COUNTS",
    "PROGRAMS",
    "decode",
    "parse_program",
    "program_to_string",
    "disassemble",
    "Memory",
    "Channel",
    "Machine",
    "MachineHandle",
    "MachineState",
    "run_program",
    "Pipeline",
    "run_chain",
    "IntcodeConfig",
]
