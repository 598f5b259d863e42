from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from core.errors import InvalidOperand, MemoryBoundsError, UndefinedLabelError
from core.model import AsmInstruction, MemoryRef, Operand, Program, RegisterRef, RegKind
from core.registers import RegisterFile, clamp_u64
from core.stack import StackMemory


@dataclass
class ExecResult:
    next_pc: int | None = None
    halt: bool = False


Executor = Callable[[RegisterFile, StackMemory, AsmInstruction, Program], ExecResult]


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    summary: str
    syntax: str
    flags: str
    executor: Executor


INSTRUCTION_SET: Dict[str, InstructionDef] = {}


def register_instruction(
    mnemonic: str, executor: Executor, summary: str = "", syntax: str = "", flags: str = "-"
) -> None:
    INSTRUCTION_SET[mnemonic.upper()] = InstructionDef(mnemonic.upper(), summary, syntax, flags, executor)


def get_instruction_executor(mnemonic: str) -> Executor | None:
    defn = INSTRUCTION_SET.get(mnemonic.upper())
    return defn.executor if defn else None


def get_instruction_defs() -> List[InstructionDef]:
    return list(INSTRUCTION_SET.values())


def _mask(width: int) -> int:
    return (1 << width) - 1


def _require_reg(op: Operand, instr: AsmInstruction) -> RegisterRef:
    if op.type != "reg" or not isinstance(op.value, RegisterRef):
        raise InvalidOperand(
            f"Expected a register for {instr.mnemonic}: {op.text}",
            instr.line_no,
            instr.text,
        )
    return op.value


def _require_mem(op: Operand, instr: AsmInstruction) -> MemoryRef:
    if op.type != "mem" or not isinstance(op.value, MemoryRef):
        raise InvalidOperand(
            f"Expected a memory operand for {instr.mnemonic}: {op.text}",
            instr.line_no,
            instr.text,
        )
    return op.value


def _value_of(op: Operand, regs: RegisterFile, instr: AsmInstruction) -> int:
    if op.type == "reg":
        return regs.read(_require_reg(op, instr))
    if op.type == "imm":
        return int(op.value)
    raise InvalidOperand(
        f"Unsupported operand for {instr.mnemonic}: {op.text}",
        instr.line_no,
        instr.text,
    )


def _resolve_address(op: Operand, regs: RegisterFile, instr: AsmInstruction) -> int:
    mem = _require_mem(op, instr)
    if mem.base is None:
        raise InvalidOperand(f"Unknown base register: {mem.base_text}", instr.line_no, instr.text)
    if mem.base.kind == RegKind.GENERAL:
        base = regs.read_x(mem.base.index)
    else:
        base = regs.read(mem.base)

    offset = 0
    if mem.offset is not None:
        offset = mem.offset
    elif mem.index_text is not None:
        if mem.index is None:
            raise InvalidOperand(f"Unknown index register: {mem.index_text}", instr.line_no, instr.text)
        offset = regs.read(mem.index) << mem.shift
    return clamp_u64(base + offset)


def _check_window(stack: StackMemory, addr: int, width: int, instr: AsmInstruction) -> None:
    if not stack.contains(addr, width):
        raise MemoryBoundsError(
            f"{instr.mnemonic} of {width} bytes at 0x{addr:X} is outside the stack "
            f"(0x{stack.base:X}..0x{stack.end:X})",
            instr.line_no,
            instr.text,
        )


def load_le(stack: StackMemory, addr: int, width: int) -> int:
    value = 0
    for i in range(width):
        value |= stack.read8(addr + i) << (8 * i)
    return value


def store_le(stack: StackMemory, addr: int, width: int, value: int) -> None:
    for i in range(width):
        stack.write8(addr + i, (value >> (8 * i)) & 0xFF)


def resolve_branch_target(op: Operand, instr: AsmInstruction, program: Program) -> int:
    name = str(op.value).strip()
    target = program.get_label(name)
    if target is not None:
        return target
    if name.lower().startswith("0x"):
        try:
            return int(name, 16)
        except ValueError:
            pass
    raise UndefinedLabelError(f"Undefined label: {op.text}", instr.line_no, instr.text)


def exec_nop(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
    return ExecResult()


def exec_mov(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
    dest = _require_reg(instr.operands[0], instr)
    value = _value_of(instr.operands[1], regs, instr)
    regs.write(dest, value)
    return ExecResult()


def _binary_op(op: Callable[[int, int], int]) -> Executor:
    def executor(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
        dest = _require_reg(instr.operands[0], instr)
        left = _value_of(instr.operands[1], regs, instr)
        right = _value_of(instr.operands[2], regs, instr)
        regs.write(dest, op(left, right) & _mask(dest.width))
        return ExecResult()

    return executor


exec_add = _binary_op(lambda a, b: a + b)
exec_sub = _binary_op(lambda a, b: a - b)
exec_and = _binary_op(lambda a, b: a & b)
exec_eor = _binary_op(lambda a, b: a ^ b)
exec_mul = _binary_op(lambda a, b: a * b)


def set_sub_flags(regs: RegisterFile, left: int, right: int, width: int) -> None:
    mask = _mask(width)
    sign_bit = 1 << (width - 1)
    left &= mask
    right &= mask
    result = (left - right) & mask
    regs.set_flag("N", result & sign_bit)
    regs.set_flag("Z", result == 0)
    regs.set_flag("C", left >= right)
    left_neg = bool(left & sign_bit)
    regs.set_flag("V", left_neg != bool(right & sign_bit) and bool(result & sign_bit) != left_neg)


def exec_cmp(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
    first = _require_reg(instr.operands[0], instr)
    left = regs.read(first)
    right = _value_of(instr.operands[1], regs, instr)
    set_sub_flags(regs, left, right, first.width)
    return ExecResult()


def _load(width_for: Callable[[RegisterRef], int]) -> Executor:
    def executor(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
        dest = _require_reg(instr.operands[0], instr)
        addr = _resolve_address(instr.operands[1], regs, instr)
        width = width_for(dest)
        _check_window(stack, addr, width, instr)
        regs.write(dest, load_le(stack, addr, width))
        return ExecResult()

    return executor


def _store(width_for: Callable[[RegisterRef], int]) -> Executor:
    def executor(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
        src = _require_reg(instr.operands[0], instr)
        addr = _resolve_address(instr.operands[1], regs, instr)
        width = width_for(src)
        _check_window(stack, addr, width, instr)
        store_le(stack, addr, width, regs.read(src))
        return ExecResult()

    return executor


def _register_width_bytes(ref: RegisterRef) -> int:
    return ref.width // 8


exec_ldr = _load(_register_width_bytes)
exec_ldrb = _load(lambda ref: 1)
exec_str = _store(_register_width_bytes)
exec_strb = _store(lambda ref: 1)


def exec_b(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
    return ExecResult(next_pc=resolve_branch_target(instr.operands[0], instr, program))


def condition_gt(regs: RegisterFile) -> bool:
    return regs.get_flag("Z") == 0 and regs.get_flag("N") == regs.get_flag("V")


def condition_le(regs: RegisterFile) -> bool:
    return not condition_gt(regs)


def _conditional_branch(condition: Callable[[RegisterFile], bool]) -> Executor:
    def executor(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
        if condition(regs):
            return ExecResult(next_pc=resolve_branch_target(instr.operands[0], instr, program))
        return ExecResult()

    return executor


exec_b_gt = _conditional_branch(condition_gt)
exec_b_le = _conditional_branch(condition_le)


def exec_ret(regs: RegisterFile, stack: StackMemory, instr: AsmInstruction, program: Program) -> ExecResult:
    return ExecResult(halt=True)


register_instruction("NOP", exec_nop, "No operation", "NOP")
register_instruction("MOV", exec_mov, "Move register or immediate", "MOV Rd, Rn|#imm")
register_instruction("ADD", exec_add, "Add", "ADD Rd, Rn, Rm|#imm")
register_instruction("SUB", exec_sub, "Subtract", "SUB Rd, Rn, Rm|#imm")
register_instruction("AND", exec_and, "Bitwise AND", "AND Rd, Rn, Rm|#imm")
register_instruction("EOR", exec_eor, "Bitwise exclusive OR", "EOR Rd, Rn, Rm|#imm")
register_instruction("MUL", exec_mul, "Multiply (low bits)", "MUL Rd, Rn, Rm|#imm")
register_instruction("CMP", exec_cmp, "Compare (Rn - Rm)", "CMP Rn, Rm|#imm", "N Z C V")
register_instruction("LDR", exec_ldr, "Load 64/32-bit word", "LDR Rt, [base{, off}]")
register_instruction("LDRB", exec_ldrb, "Load byte, zero-extended", "LDRB Rt, [base{, off}]")
register_instruction("STR", exec_str, "Store 64/32-bit word", "STR Rt, [base{, off}]")
register_instruction("STRB", exec_strb, "Store low byte", "STRB Rt, [base{, off}]")
register_instruction("B", exec_b, "Branch", "B label")
register_instruction("B.GT", exec_b_gt, "Branch if signed greater than", "B.GT label")
register_instruction("B.LE", exec_b_le, "Branch if signed less than or equal", "B.LE label")
register_instruction("RET", exec_ret, "Return (halts the emulator)", "RET")
