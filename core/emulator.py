from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from core.errors import EmulationError, InvalidPC
from core.instructions import ExecResult, get_instruction_executor
from core.model import Program
from core.registers import RegisterFile
from core.stack import DEFAULT_STACK_SIZE, StackMemory

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100000


class StepLimitExceeded(Exception):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Exceeded step limit ({limit})")
        self.limit = limit


def step(program: Program, registers: RegisterFile, stack: StackMemory, pc: int) -> bool:
    """Execute the instruction at ``pc`` and return whether execution continues.

    The next PC is written to ``registers``. Returns False at the end address
    and after RET; RET leaves the PC untouched.
    """
    end = program.end_address
    if pc == end:
        return False
    instr = program.instruction_at(pc)
    if instr is None:
        raise InvalidPC(f"PC points to unknown address: 0x{pc:X}")

    executor = get_instruction_executor(instr.mnemonic)
    if executor is None:
        # Unknown mnemonics run as no-ops.
        logger.debug("0x%04X: %s (no-op)", pc, instr.mnemonic)
        result = ExecResult()
    else:
        logger.debug("0x%04X: %s", pc, instr.text.strip())
        result = executor(registers, stack, instr, program)

    if result.halt:
        logger.info("Halted by %s at 0x%X", instr.mnemonic, pc)
        return False

    next_pc = pc + 4 if result.next_pc is None else result.next_pc
    registers.write_pc(next_pc)
    return next_pc != end


@dataclass
class StepOutcome:
    halted: bool = False
    error: Optional[EmulationError] = None
    pc: int = 0


class Emulator:
    def __init__(
        self,
        program: Program,
        registers: Optional[RegisterFile] = None,
        stack: Optional[StackMemory] = None,
    ) -> None:
        self.program = program
        self.registers = registers or RegisterFile()
        self.stack = stack or StackMemory(0, DEFAULT_STACK_SIZE)
        self.halted = False
        self.steps = 0
        if registers is None:
            self.reset()

    def reset(self) -> None:
        self.registers.reset()
        self.registers.write_sp(self.stack.base)
        self.stack.clear()
        self.halted = False
        self.steps = 0

    def step(self) -> StepOutcome:
        if self.halted:
            return StepOutcome(halted=True, pc=self.registers.read_pc())
        pc = self.registers.read_pc()
        try:
            running = step(self.program, self.registers, self.stack, pc)
        except EmulationError as exc:
            logger.debug("Step failed at 0x%X: %s", pc, exc)
            return StepOutcome(error=exc, pc=pc)
        self.steps += 1
        if not running:
            self.halted = True
            logger.info("Program finished after %d steps, PC = 0x%X", self.steps, self.registers.read_pc())
        return StepOutcome(halted=not running, pc=self.registers.read_pc())

    def run(self, max_steps: int = DEFAULT_MAX_STEPS, before_step: Optional[Callable[[int], None]] = None) -> int:
        """Step until halt. Raises the first EmulationError or StepLimitExceeded.

        ``before_step`` is called with the current PC ahead of every step.
        """
        executed = 0
        while not self.halted:
            if executed >= max_steps:
                raise StepLimitExceeded(max_steps)
            if before_step is not None:
                before_step(self.registers.read_pc())
            outcome = self.step()
            if outcome.error is not None:
                raise outcome.error
            executed += 1
        return executed
