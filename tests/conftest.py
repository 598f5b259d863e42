import pytest

from core.model import Program
from core.program import parse_assembly
from core.registers import RegisterFile
from core.stack import StackMemory


@pytest.fixture
def regs() -> RegisterFile:
    return RegisterFile()


@pytest.fixture
def stack() -> StackMemory:
    return StackMemory(0, 256)


@pytest.fixture
def assemble():
    def _assemble(source: str) -> Program:
        return parse_assembly(source)

    return _assemble
