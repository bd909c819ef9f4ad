"""
Intcode Errors

Every fault a machine can hit derives from IntcodeError. All of them are
fatal to the machine instance that raised them.
"""

from typing import Optional


class IntcodeError(Exception):
    """Base class for all Intcode machine faults."""
    pass


class ParseError(IntcodeError, ValueError):
    """Program text could not be parsed into integers."""

    def __init__(self, message: str, token: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.token = token
        self.index = index


class UnknownOpcode(IntcodeError):
    """The instruction word does not name an opcode in the table."""

    def __init__(self, code: int, address: int):
        super().__init__(f"Unknown opcode {code} at address {address}")
        self.code = code
        self.address = address


class InvalidAddressingMode(IntcodeError):
    """A mode digit other than 0, 1 or 2."""

    def __init__(self, mode: int, value: int, address: int):
        super().__init__(
            f"Invalid addressing mode {mode} in instruction {value} at address {address}"
        )
        self.mode = mode
        self.value = value
        self.address = address


class InvalidWriteTarget(IntcodeError):
    """Immediate mode used as a write destination."""

    def __init__(self, address: int, operand: int):
        super().__init__(
            f"Immediate mode used as write target (operand {operand} "
            f"of instruction at address {address})"
        )
        self.address = address
        self.operand = operand


class NegativeAddress(IntcodeError):
    """A memory access resolved to an address below zero."""

    def __init__(self, address: int):
        super().__init__(f"Negative memory address {address}")
        self.address = address


class ChannelClosed(IntcodeError):
    """Send on a closed channel, or receive on a closed and drained one."""
    pass


class ChannelTimeout(IntcodeError):
    """A bounded receive expired before a value arrived."""
    pass


class JoinTimeout(IntcodeError):
    """A bounded join expired while the machine was still running."""
    pass


class StepLimitExceeded(IntcodeError):
    """The machine used up its instruction budget without halting."""

    def __init__(self, max_steps: int):
        super().__init__(f"Machine exceeded {max_steps} steps without halting")
        self.max_steps = max_steps
