"""
Machine Pipelines

Wires several machines output-to-input, either as an open chain or as a
feedback ring, and runs them concurrently.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeout
from typing import Iterable, List, Optional, Sequence, Tuple, Union
import logging

from .channel import Channel
from .errors import JoinTimeout
from .machine import Machine
from .opcodes import parse_program

logger = logging.getLogger(__name__)


class Pipeline:
    """
    A set of machines connected by channels.

    Machine i reads from channels[i] and writes to channels[i + 1]. In
    a ring the last channel is the first, so the last machine feeds the
    first. The exit channel is the last machine's output.
    """

    def __init__(self, machines: List[Machine], channels: List[Channel]):
        if not machines:
            raise ValueError("Need at least 1 machine for a pipeline")
        self.machines = machines
        self.channels = channels

    @classmethod
    def chain(
        cls,
        program: Union[str, Sequence[int]],
        count: int,
        feedback: bool = False,
        max_steps: Optional[int] = None,
        overrides: Optional[Iterable[Tuple[int, int]]] = None,
    ) -> "Pipeline":
        """
        Build `count` copies of a program wired in sequence.

        Args:
            program: Program text or parsed program shared by every machine
            count: Number of machines
            feedback: Connect the last machine's output to the first's input
            max_steps: Optional instruction budget per machine
            overrides: (address, value) patches applied to every machine

        Returns:
            An unstarted Pipeline
        """
        if count < 1:
            raise ValueError("Need at least 1 machine for a pipeline")
        if isinstance(program, str):
            program = parse_program(program)
        overrides = list(overrides or ())

        num_channels = count if feedback else count + 1
        channels = [Channel(name=f"link{i}") for i in range(num_channels)]

        machines = []
        for i in range(count):
            machines.append(Machine(
                program,
                input_channel=channels[i],
                output_channel=channels[(i + 1) % num_channels],
                overrides=overrides,
                max_steps=max_steps,
                name=f"stage{i}",
            ))

        logger.debug(
            "Wired %d machines as a %s", count, "ring" if feedback else "chain"
        )
        return cls(machines, channels)

    @property
    def exit_channel(self) -> Channel:
        return self.machines[-1].output

    def seed(self, index: int, *values: int):
        """Push values onto machine `index`'s input."""
        for value in values:
            self.machines[index].input.send(value)

    def _abort(self):
        # Unblocks any machine still waiting on input
        for channel in self.channels:
            channel.close()

    def run(self, timeout: Optional[float] = None) -> List[int]:
        """
        Run every machine to completion.

        Args:
            timeout: Seconds to wait for all machines, or None

        Returns:
            Values left on the exit channel

        Raises:
            The first machine fault, after the remaining machines have
            been unblocked; JoinTimeout if the timeout expires
        """
        first_error: Optional[Exception] = None

        with ThreadPoolExecutor(max_workers=len(self.machines)) as executor:
            futures = {
                executor.submit(machine.run): machine for machine in self.machines
            }
            try:
                for future in as_completed(futures, timeout=timeout):
                    error = future.exception()
                    if error is not None and first_error is None:
                        first_error = error
                        logger.warning(
                            "Aborting pipeline: %s failed: %s", futures[future].name, error
                        )
                        self._abort()
            except FuturesTimeout:
                self._abort()
                raise JoinTimeout(
                    f"Pipeline of {len(self.machines)} machines did not finish in {timeout}s"
                ) from None

        if first_error is not None:
            raise first_error

        return self.exit_channel.drain()


def run_chain(
    program: Union[str, Sequence[int]],
    seeds: Sequence[Sequence[int]],
    feedback: bool = False,
    timeout: Optional[float] = None,
) -> List[int]:
    """
    Run one machine per seed list, wired as a chain or ring.

    Args:
        program: Program shared by every machine
        seeds: Initial input values for each machine, in order
        feedback: Wire the machines as a ring
        timeout: Seconds to wait for completion

    Returns:
        Values left on the exit channel
    """
    pipeline = Pipeline.chain(program, len(seeds), feedback=feedback)
    for index, values in enumerate(seeds):
        pipeline.seed(index, *values)
    return pipeline.run(timeout=timeout)
