from __future__ import annotations

from typing import List

from core.model import DecodedInstruction, MemoryRef, Operand
from core.registers import RegisterFile
from core.stack import StackMemory


SEPARATOR = "-" * 127


def hex64(value: int) -> str:
    return f"0x{value & 0xFFFFFFFFFFFFFFFF:016x}"


def describe_memory_operand(op: Operand) -> str:
    if op.type != "mem" or not isinstance(op.value, MemoryRef):
        return op.text
    mem = op.value
    inner = op.text.strip()[1:-1].strip()
    if mem.offset is not None:
        return f"[{inner}] --> {mem.base_text} + {mem.offset}"
    if mem.index_text is not None:
        index = mem.index_text if not mem.shift else f"({mem.index_text} << {mem.shift})"
        return f"[{inner}] --> {mem.base_text} + {index}"
    return f"[{inner}]"


def format_decoded(index: int, instruction: DecodedInstruction) -> str:
    lines = [SEPARATOR, f"Instruction #{index}:", "", SEPARATOR, "", f"Instruction: {instruction.mnemonic}", ""]
    for position, op in enumerate(instruction.operands, start=1):
        lines.append(f"Operand #{position}: {describe_memory_operand(op)}")
        lines.append("")
    return "\n".join(lines)


def format_registers(registers: RegisterFile) -> str:
    lines = [SEPARATOR, "", "Registers:", "", SEPARATOR, ""]
    for row in range(10):
        cells = [f"X{n}: {hex64(registers.read_x(n))}" for n in (row, row + 10, row + 20)]
        lines.append(" ".join(cells))
        lines.append("")
    lines.append(
        f"SP: {hex64(registers.read_sp())} PC: {hex64(registers.read_pc())} X30: {hex64(registers.read_x(30))}"
    )
    lines.append("")
    for name in ("N", "Z", "C", "V"):
        lines.append(f"Processor State {name} bit: {registers.get_flag(name)}")
    return "\n".join(lines)


def format_stack(stack: StackMemory, per_line: int = 16) -> str:
    lines: List[str] = [SEPARATOR, "Stack:", "", SEPARATOR]
    for offset in range(0, stack.size, per_line):
        length = min(per_line, stack.size - offset)
        chunk = stack.read_bytes(stack.base + offset, length)
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        ascii_part = "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in chunk)
        lines.append(f"{stack.base + offset:08x} {hex_part} |{ascii_part}|")
        lines.append("")
    lines.append(f"{stack.end:08x}")
    return "\n".join(lines)
