from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RegKind(Enum):
    GENERAL = "general"
    STACK_POINTER = "sp"
    ZERO = "zero"


@dataclass(frozen=True)
class RegisterRef:
    kind: RegKind
    index: Optional[int] = None
    width: int = 64

    @property
    def name(self) -> str:
        prefix = "W" if self.width == 32 else "X"
        if self.kind == RegKind.STACK_POINTER:
            return "SP"
        if self.kind == RegKind.ZERO:
            return f"{prefix}ZR"
        return f"{prefix}{self.index}"


@dataclass(frozen=True)
class MemoryRef:
    base: Optional[RegisterRef]
    base_text: str
    offset: Optional[int] = None
    index: Optional[RegisterRef] = None
    index_text: Optional[str] = None
    shift: int = 0


@dataclass(frozen=True)
class Operand:
    type: str  # reg, imm, mem, label
    value: RegisterRef | MemoryRef | int | str
    text: str


@dataclass(frozen=True)
class DecodedInstruction:
    mnemonic: str
    operands: Tuple[Operand, ...]
    line_no: int = 0
    text: str = ""


@dataclass(frozen=True)
class AsmInstruction:
    address: int
    index: int  # 1-based
    instruction: DecodedInstruction

    @property
    def mnemonic(self) -> str:
        return self.instruction.mnemonic

    @property
    def operands(self) -> Tuple[Operand, ...]:
        return self.instruction.operands

    @property
    def line_no(self) -> int:
        return self.instruction.line_no

    @property
    def text(self) -> str:
        return self.instruction.text


@dataclass
class Program:
    instructions: List[AsmInstruction]
    labels: Dict[str, int]
    addr_to_index: Dict[int, int] = field(init=False)

    def __post_init__(self) -> None:
        self.addr_to_index = {instr.address: pos for pos, instr in enumerate(self.instructions)}

    @property
    def end_address(self) -> int:
        return len(self.instructions) * 4

    def get_label(self, name: str) -> Optional[int]:
        return self.labels.get(name.strip().upper())

    def instruction_at(self, address: int) -> Optional[AsmInstruction]:
        pos = self.addr_to_index.get(address)
        if pos is None:
            return None
        return self.instructions[pos]

    def address_for_line(self, line_no: int) -> Optional[int]:
        for instr in self.instructions:
            if instr.line_no == line_no:
                return instr.address
        return None
