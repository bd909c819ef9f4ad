"""
Intcode Machine

The execution engine and the handle used to run it on its own thread.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import threading

from .channel import Channel
from .errors import IntcodeError, InvalidWriteTarget, JoinTimeout, StepLimitExceeded
from .memory import Memory
from .opcodes import AddressMode, Instruction, OpCode, decode, parse_program

logger = logging.getLogger(__name__)


class MachineState(Enum):
    """Lifecycle of a machine."""
    RUNNING = "running"
    WAITING_ON_INPUT = "waiting_on_input"
    HALTED = "halted"
    FAULTED = "faulted"


class Machine:
    """
    Intcode virtual machine.

    Owns its memory and registers exclusively; the only things shared
    with the outside world are the input and output channels.
    """

    def __init__(
        self,
        program: Union[str, Sequence[int]],
        input_channel: Optional[Channel] = None,
        output_channel: Optional[Channel] = None,
        overrides: Optional[Iterable[Tuple[int, int]]] = None,
        max_steps: Optional[int] = None,
        name: str = "intcode",
    ):
        """
        Initialize the machine.

        Args:
            program: Program text or an already parsed list of integers
            input_channel: Channel to read from (a new one if omitted)
            output_channel: Channel to write to (a new one if omitted)
            overrides: (address, value) pairs patched in before running
            max_steps: Optional instruction budget; None means unlimited
            name: Label used in logs and thread names
        """
        if isinstance(program, str):
            program = parse_program(program)

        self.name = name
        self.max_steps = max_steps
        self.memory = Memory(program)
        for address, value in overrides or ():
            self.memory.write(address, value)

        self.input = input_channel if input_channel is not None else Channel(name=f"{name}.in")
        self.output = output_channel if output_channel is not None else Channel(name=f"{name}.out")

        # Registers
        self.instruction_pointer: int = 0
        self.relative_base: int = 0

        # Execution state
        self.state: MachineState = MachineState.RUNNING
        self.error: Optional[IntcodeError] = None
        self.steps: int = 0
        self.inputs_consumed: int = 0
        self.outputs_produced: int = 0

        self._handle: Optional["MachineHandle"] = None

    @property
    def finished(self) -> bool:
        return self.state in (MachineState.HALTED, MachineState.FAULTED)

    def _operand(self, index: int) -> int:
        """Raw operand word `index` of the current instruction."""
        return self.memory.read(self.instruction_pointer + 1 + index)

    def _read(self, instr: Instruction, index: int) -> int:
        """Resolve operand `index` as a value."""
        mode = instr.modes[index]
        raw = self._operand(index)

        if mode == AddressMode.IMMEDIATE:
            return raw
        elif mode == AddressMode.RELATIVE:
            return self.memory.read(self.relative_base + raw)
        return self.memory.read(raw)

    def _address(self, instr: Instruction, index: int) -> int:
        """Resolve operand `index` as a write destination."""
        mode = instr.modes[index]
        raw = self._operand(index)

        if mode == AddressMode.IMMEDIATE:
            raise InvalidWriteTarget(self.instruction_pointer, index)
        elif mode == AddressMode.RELATIVE:
            return self.relative_base + raw
        return raw

    def _write(self, instr: Instruction, index: int, value: int):
        self.memory.write(self._address(instr, index), value)

    def _receive(self) -> int:
        if self.input.empty():
            self.state = MachineState.WAITING_ON_INPUT
        value = self.input.receive()
        self.state = MachineState.RUNNING
        self.inputs_consumed += 1
        return value

    def _execute_one(self):
        """Fetch, decode and execute the instruction at the pointer."""
        ptr = self.instruction_pointer
        instr = decode(self.memory.read(ptr), ptr)
        next_ptr = ptr + instr.size
        self.steps += 1

        if instr.opcode == OpCode.ADD:
            self._write(instr, 2, self._read(instr, 0) + self._read(instr, 1))

        elif instr.opcode == OpCode.MUL:
            self._write(instr, 2, self._read(instr, 0) * self._read(instr, 1))

        elif instr.opcode == OpCode.INPUT:
            # Destination is resolved before blocking on input
            address = self._address(instr, 0)
            self.memory.write(address, self._receive())

        elif instr.opcode == OpCode.OUTPUT:
            self.output.send(self._read(instr, 0))
            self.outputs_produced += 1

        elif instr.opcode == OpCode.JUMP_IF_TRUE:
            if self._read(instr, 0) != 0:
                next_ptr = self._read(instr, 1)

        elif instr.opcode == OpCode.JUMP_IF_FALSE:
            if self._read(instr, 0) == 0:
                next_ptr = self._read(instr, 1)

        elif instr.opcode == OpCode.LESS_THAN:
            self._write(instr, 2, int(self._read(instr, 0) < self._read(instr, 1)))

        elif instr.opcode == OpCode.EQUALS:
            self._write(instr, 2, int(self._read(instr, 0) == self._read(instr, 1)))

        elif instr.opcode == OpCode.ADJUST_BASE:
            self.relative_base += self._read(instr, 0)

        elif instr.opcode == OpCode.HALT:
            # Pointer stays on the halt instruction
            self.state = MachineState.HALTED
            self.output.close()
            return

        self.instruction_pointer = next_ptr

    def _fault(self, error: IntcodeError):
        self.state = MachineState.FAULTED
        self.error = error
        logger.warning(
            "%s faulted at address %d after %d steps: %s",
            self.name, self.instruction_pointer, self.steps, error,
        )

    def step(self) -> bool:
        """
        Execute one instruction.

        Returns:
            True if the machine can keep running
        """
        if self.finished:
            return False

        try:
            if self.max_steps is not None and self.steps >= self.max_steps:
                raise StepLimitExceeded(self.max_steps)
            self._execute_one()
        except IntcodeError as e:
            self._fault(e)
            raise

        return self.state != MachineState.HALTED

    def run(self) -> MachineState:
        """
        Run to completion on the calling thread.

        Returns:
            The final state (HALTED); faults are raised
        """
        logger.debug("%s starting at address %d", self.name, self.instruction_pointer)

        while self.step():
            pass

        logger.debug("%s halted after %d steps", self.name, self.steps)
        return self.state

    def handle(self) -> "MachineHandle":
        """The caller-facing handle for this machine (one per machine)."""
        if self._handle is None:
            self._handle = MachineHandle(self)
        return self._handle

    def start(self) -> "MachineHandle":
        """Start the machine on its own thread and return its handle."""
        return self.handle().start()

    def copy(self, name: Optional[str] = None) -> "Machine":
        """
        Copy memory and registers into a new, unstarted machine.

        The copy gets fresh channels.
        """
        clone = Machine([], max_steps=self.max_steps, name=name or self.name)
        clone.memory = self.memory.copy()
        clone.instruction_pointer = self.instruction_pointer
        clone.relative_base = self.relative_base
        return clone

    def get_metrics(self) -> Dict[str, int]:
        """Execution counters for this machine."""
        return {
            "instructions_executed": self.steps,
            "inputs_consumed": self.inputs_consumed,
            "outputs_produced": self.outputs_produced,
            "memory_size": len(self.memory),
        }

    def __repr__(self) -> str:
        return (
            f"Machine({self.name!r}, state={self.state.value}, "
            f"ip={self.instruction_pointer}, rb={self.relative_base})"
        )


class MachineHandle:
    """
    Start, feed, drain and join a machine running on its own thread.
    """

    def __init__(self, machine: Machine):
        self.machine = machine
        self._thread: Optional[threading.Thread] = None
        self._exception: Optional[Exception] = None

    @property
    def state(self) -> MachineState:
        return self.machine.state

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def send(self, value: int):
        """Push a value onto the machine's input channel."""
        self.machine.input.send(value)

    def close_input(self):
        """Signal that no more input will be sent."""
        self.machine.input.close()

    def receive(self, timeout: Optional[float] = None) -> int:
        """Pull the next value from the machine's output channel."""
        return self.machine.output.receive(timeout=timeout)

    def drain(self) -> List[int]:
        """Take all buffered output without blocking."""
        return self.machine.output.drain()

    def _run(self):
        try:
            self.machine.run()
        except Exception as e:
            # Surfaced to the owner by join()
            self._exception = e

    def start(self) -> "MachineHandle":
        """Run the machine on a dedicated daemon thread."""
        if self._thread is not None:
            raise RuntimeError(f"Machine {self.machine.name!r} already started")

        self._thread = threading.Thread(
            target=self._run,
            name=f"intcode-{self.machine.name}",
            daemon=True,
        )
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> MachineState:
        """
        Wait for the machine to finish.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            The final machine state

        Raises:
            The machine's fault, if it faulted; JoinTimeout if it is
            still running when the timeout expires
        """
        if self._thread is None:
            raise RuntimeError(f"Machine {self.machine.name!r} was never started")

        self._thread.join(timeout)
        if self._thread.is_alive():
            raise JoinTimeout(
                f"Machine {self.machine.name!r} still {self.machine.state.value} "
                f"after {timeout}s"
            )

        if self._exception is not None:
            raise self._exception
        return self.machine.state


def run_program(
    program: Union[str, Sequence[int]],
    inputs: Iterable[int] = (),
    overrides: Optional[Iterable[Tuple[int, int]]] = None,
    max_steps: Optional[int] = None,
) -> List[int]:
    """
    Run a program synchronously with a fixed list of inputs.

    The input channel is closed after seeding, so a program asking for
    more input than supplied faults with ChannelClosed instead of
    blocking forever.

    Returns:
        Everything the program output
    """
    machine = Machine(program, overrides=overrides, max_steps=max_steps)
    for value in inputs:
        machine.input.send(value)
    machine.input.close()

    machine.run()
    return machine.output.drain()
