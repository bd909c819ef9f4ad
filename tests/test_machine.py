"""Tests for the Intcode execution engine and machine handle."""

import time

import pytest

from intcode.errors import (
    ChannelClosed,
    InvalidWriteTarget,
    JoinTimeout,
    NegativeAddress,
    StepLimitExceeded,
    UnknownOpcode,
)
from intcode.machine import Machine, MachineState, run_program
from intcode.opcodes import PROGRAMS, parse_program


def wait_for_state(machine, state, timeout=5.0):
    deadline = time.monotonic() + timeout
    while machine.state != state:
        if time.monotonic() > deadline:
            raise AssertionError(f"Machine never reached {state}, still {machine.state}")
        time.sleep(0.005)


class TestArithmetic:

    def test_adder_fixture(self):
        machine = Machine(PROGRAMS["adder"])
        assert machine.run() == MachineState.HALTED
        assert machine.memory.read(0) == 3500
        assert machine.memory.dump() == [3500, 9, 10, 70, 2, 3, 11, 0, 99, 30, 40, 50]

    @pytest.mark.parametrize("program,final", [
        ("1,0,0,0,99", [2, 0, 0, 0, 99]),
        ("2,3,0,3,99", [2, 3, 0, 6, 99]),
        ("2,4,4,5,99,0", [2, 4, 4, 5, 99, 9801]),
        ("1,1,1,4,99,5,6,0,99", [30, 1, 1, 4, 2, 5, 6, 0, 99]),
    ])
    def test_small_programs(self, program, final):
        machine = Machine(program)
        machine.run()
        assert machine.memory.dump() == final

    def test_overrides_applied_before_run(self):
        machine = Machine("1,0,0,0,99,7,8", overrides=[(1, 5), (2, 6)])
        assert machine.memory.read(1) == 5
        machine.run()
        assert machine.memory.read(0) == 15

    def test_accepts_parsed_program(self):
        machine = Machine(parse_program(PROGRAMS["adder"]))
        machine.run()
        assert machine.memory.read(0) == 3500

    def test_big_numbers(self):
        assert run_program(PROGRAMS["big-product"]) == [1219070632396864]
        assert run_program(PROGRAMS["big-literal"]) == [1125899906842624]

    def test_no_truncation_past_64_bits(self):
        big = 2 ** 62
        assert run_program(f"1102,{big},4,7,4,7,99,0") == [big * 4]


class TestInputOutput:

    def test_echo(self):
        assert run_program(PROGRAMS["echo"], [42]) == [42]

    @pytest.mark.parametrize("name,value,expected", [
        ("equals-8", 8, 1),
        ("equals-8", 7, 0),
        ("less-than-8", 7, 1),
        ("less-than-8", 8, 0),
        ("is-nonzero", 0, 0),
        ("is-nonzero", 5, 1),
        ("compare-8", 7, 999),
        ("compare-8", 8, 1000),
        ("compare-8", 9, 1001),
    ])
    def test_comparison_programs(self, name, value, expected):
        assert run_program(PROGRAMS[name], [value]) == [expected]

    def test_quine(self):
        program = parse_program(PROGRAMS["quine"])
        assert run_program(program) == program

    def test_missing_input_faults(self):
        with pytest.raises(ChannelClosed):
            run_program("3,0,99")

    def test_closed_output_faults(self):
        machine = Machine("104,1,99")
        machine.output.close()
        with pytest.raises(ChannelClosed):
            machine.run()
        assert machine.state == MachineState.FAULTED
        assert machine.outputs_produced == 0

    def test_halt_closes_output(self):
        machine = Machine("104,1,99")
        machine.run()
        assert machine.output.closed
        assert machine.output.drain() == [1]


class TestAddressing:

    def test_relative_write_matches_position(self):
        # rb = 50, then write 3 + 4 to relative offset 5, output position 55
        machine = Machine("109,50,21101,3,4,5,4,55,99")
        machine.input.close()
        machine.run()
        assert machine.output.drain() == [7]
        assert machine.memory.read(55) == 7

    def test_relative_read_matches_position(self):
        assert run_program("109,7,204,-1,99,0,42") == [42]

    def test_relative_base_accumulates(self):
        machine = Machine("109,10,209,5,99,0,0,0,0,0,0,0,0,0,0,-3")
        machine.run()
        assert machine.relative_base == 7

    def test_unwritten_memory_reads_zero(self):
        assert run_program("4,500,99") == [0]

    def test_write_past_program_end(self):
        machine = Machine("1101,2,3,1000,4,1000,99")
        machine.run()
        assert machine.output.drain() == [5]
        assert len(machine.memory) == 1001

    def test_immediate_write_target(self):
        machine = Machine("11101,1,1,0,99")
        with pytest.raises(InvalidWriteTarget):
            machine.run()
        assert machine.state == MachineState.FAULTED
        assert machine.memory.read(0) == 11101

    def test_immediate_input_target_leaves_input_unconsumed(self):
        machine = Machine("103,0,99")
        machine.input.send(5)
        with pytest.raises(InvalidWriteTarget):
            machine.run()
        assert machine.input.drain() == [5]

    def test_negative_relative_address(self):
        with pytest.raises(NegativeAddress):
            run_program("109,-5,204,0,99")


class TestControlFlow:

    @pytest.mark.parametrize("program,pointer", [
        ("1105,1,7,99,0,0,0,99", 7),
        ("1105,0,7,99", 3),
        ("1106,0,9,99", 9),
        ("1106,1,9,99", 3),
    ])
    def test_jump_pointer(self, program, pointer):
        machine = Machine(program)
        assert machine.step()
        assert machine.instruction_pointer == pointer

    def test_unknown_opcode_faults(self):
        machine = Machine("1,0,0,0,42")
        with pytest.raises(UnknownOpcode) as exc:
            machine.run()
        assert exc.value.code == 42
        assert exc.value.address == 4
        assert machine.state == MachineState.FAULTED
        assert machine.error is exc.value
        # The first instruction ran, the bad one did nothing
        assert machine.memory.dump() == [2, 0, 0, 0, 42]

    def test_finished_machine_does_not_step(self):
        machine = Machine("99")
        assert machine.step() is False
        assert machine.state == MachineState.HALTED
        assert machine.instruction_pointer == 0
        assert machine.step() is False

    def test_step_limit(self):
        machine = Machine("1105,1,0", max_steps=100)
        with pytest.raises(StepLimitExceeded):
            machine.run()
        assert machine.steps == 100
        assert machine.state == MachineState.FAULTED


class TestMachineUtilities:

    def test_copy_is_independent(self):
        original = Machine("1,0,0,0,99")
        clone = original.copy()
        clone.memory.write(1, 4)
        clone.run()
        assert clone.memory.read(0) == 100
        assert original.memory.read(0) == 1
        assert original.state == MachineState.RUNNING
        assert clone.input is not original.input

    def test_metrics(self):
        machine = Machine(PROGRAMS["echo"])
        machine.input.send(3)
        machine.run()
        assert machine.get_metrics() == {
            "instructions_executed": 3,
            "inputs_consumed": 1,
            "outputs_produced": 1,
            "memory_size": 5,
        }


class TestHandle:

    def test_threaded_echo(self):
        handle = Machine(PROGRAMS["echo"]).start()
        handle.send(9)
        assert handle.receive(timeout=5) == 9
        assert handle.join(timeout=5) == MachineState.HALTED
        assert not handle.running

    def test_seed_then_start(self):
        machine = Machine(PROGRAMS["compare-8"])
        handle = machine.handle()
        handle.send(8)
        handle.start()
        handle.join(timeout=5)
        assert handle.drain() == [1000]

    def test_waiting_on_input(self):
        machine = Machine("3,0,4,0,99")
        handle = machine.start()
        wait_for_state(machine, MachineState.WAITING_ON_INPUT)
        handle.send(11)
        handle.join(timeout=5)
        assert machine.state == MachineState.HALTED
        assert handle.drain() == [11]

    def test_join_reraises_fault(self):
        machine = Machine("42")
        handle = machine.start()
        with pytest.raises(UnknownOpcode):
            handle.join(timeout=5)
        assert handle.state == MachineState.FAULTED

    def test_join_timeout_then_close(self):
        handle = Machine("3,0,99").start()
        with pytest.raises(JoinTimeout):
            handle.join(timeout=0.05)
        handle.close_input()
        with pytest.raises(ChannelClosed):
            handle.join(timeout=5)

    def test_handle_is_shared(self):
        machine = Machine("99")
        assert machine.handle() is machine.handle()

    def test_start_twice(self):
        handle = Machine("99").start()
        handle.join(timeout=5)
        with pytest.raises(RuntimeError):
            handle.start()

    def test_join_before_start(self):
        with pytest.raises(RuntimeError):
            Machine("99").handle().join()
