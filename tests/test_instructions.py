import pytest

from core.errors import InvalidOperand, MemoryBoundsError, UndefinedLabelError
from core.instructions import (
    INSTRUCTION_SET,
    exec_add,
    exec_and,
    exec_b,
    exec_b_gt,
    exec_b_le,
    exec_cmp,
    exec_eor,
    exec_ldr,
    exec_ldrb,
    exec_mov,
    exec_mul,
    exec_nop,
    exec_ret,
    exec_str,
    exec_strb,
    exec_sub,
    get_instruction_executor,
)
from core.program import parse_assembly


def _single(source: str):
    program = parse_assembly(source)
    return program.instructions[0], program


def _flags(regs):
    return tuple(regs.get_flag(name) for name in ("N", "Z", "C", "V"))


def test_every_mnemonic_is_registered():
    expected = {
        "NOP", "MOV", "ADD", "SUB", "AND", "EOR", "MUL", "CMP",
        "LDR", "LDRB", "STR", "STRB", "B", "B.GT", "B.LE", "RET",
    }
    assert set(INSTRUCTION_SET) == expected
    assert get_instruction_executor("add") is exec_add
    assert get_instruction_executor("FOO") is None
    assert INSTRUCTION_SET["CMP"].flags == "N Z C V"


def test_nop_changes_nothing(regs, stack):
    instr, program = _single("NOP")
    result = exec_nop(regs, stack, instr, program)
    assert result.next_pc is None and not result.halt
    assert regs.read_x(0) == 0


def test_mov_immediate_and_register(regs, stack):
    instr, program = _single("MOV X1, #0x2A")
    exec_mov(regs, stack, instr, program)
    assert regs.read_x(1) == 42

    instr, program = _single("MOV X2, X1")
    exec_mov(regs, stack, instr, program)
    assert regs.read_x(2) == 42


def test_mov_negative_immediate_wraps(regs, stack):
    instr, program = _single("MOV X0, #-1")
    exec_mov(regs, stack, instr, program)
    assert regs.read_x(0) == 0xFFFFFFFFFFFFFFFF


def test_arithmetic_and_logic(regs, stack):
    regs.write_x(0, 5)
    regs.write_x(1, 3)
    for source, executor, dest, expected in (
        ("ADD X2, X0, X1", exec_add, 2, 8),
        ("SUB X3, X1, #5", exec_sub, 3, 0xFFFFFFFFFFFFFFFE),
        ("AND X4, X0, #4", exec_and, 4, 4),
        ("EOR X5, X0, X1", exec_eor, 5, 6),
        ("MUL X6, X0, X1", exec_mul, 6, 15),
    ):
        instr, program = _single(source)
        executor(regs, stack, instr, program)
        assert regs.read_x(dest) == expected, source


def test_arithmetic_does_not_touch_flags(regs, stack):
    regs.set_flag("Z", 1)
    instr, program = _single("ADD X0, X0, #1")
    exec_add(regs, stack, instr, program)
    assert regs.get_flag("Z") == 1


def test_w_destination_wraps_and_zero_extends(regs, stack):
    regs.write_x(0, 0xFFFFFFFF_FFFFFFFF)
    instr, program = _single("ADD W0, W0, #1")
    exec_add(regs, stack, instr, program)
    assert regs.read_x(0) == 0

    instr, program = _single("MOV W1, #0xFFFFFFFF")
    exec_mov(regs, stack, instr, program)
    assert regs.read_x(1) == 0xFFFFFFFF


def test_cmp_greater_equal_and_less(regs, stack):
    regs.write_x(0, 5)
    instr, program = _single("CMP X0, #3")
    exec_cmp(regs, stack, instr, program)
    assert _flags(regs) == (0, 0, 1, 0)

    instr, program = _single("CMP X0, #5")
    exec_cmp(regs, stack, instr, program)
    assert _flags(regs) == (0, 1, 1, 0)

    regs.write_x(0, 3)
    regs.write_x(1, 5)
    instr, program = _single("CMP X0, X1")
    exec_cmp(regs, stack, instr, program)
    assert _flags(regs) == (1, 0, 0, 0)


def test_cmp_signed_overflow_sets_v(regs, stack):
    regs.write_x(0, 0x8000000000000000)
    instr, program = _single("CMP X0, #1")
    exec_cmp(regs, stack, instr, program)
    n, z, c, v = _flags(regs)
    assert (n, z, c, v) == (0, 0, 1, 1)


def test_cmp_uses_32_bit_width_for_w_registers(regs, stack):
    regs.write_x(0, 0x1_0000_0000)
    instr, program = _single("CMP W0, #0")
    exec_cmp(regs, stack, instr, program)
    assert regs.get_flag("Z") == 1


def test_str_then_ldr_round_trip_little_endian(regs, stack):
    regs.write_x(6, 0x0102030405060708)
    instr, program = _single("STR X6, [SP, #32]")
    exec_str(regs, stack, instr, program)
    assert stack.read_bytes(32, 8) == bytes([8, 7, 6, 5, 4, 3, 2, 1])

    instr, program = _single("LDR X7, [SP, #32]")
    exec_ldr(regs, stack, instr, program)
    assert regs.read_x(7) == 0x0102030405060708


def test_w_register_load_store_use_four_bytes(regs, stack):
    stack.fill_random()
    regs.write_x(1, 0xAABBCCDD)
    instr, program = _single("STR W1, [SP]")
    exec_str(regs, stack, instr, program)
    assert stack.read_bytes(0, 4) == bytes([0xDD, 0xCC, 0xBB, 0xAA])

    regs.write_x(2, 0xFFFFFFFF_FFFFFFFF)
    instr, program = _single("LDR W2, [SP, #0]")
    exec_ldr(regs, stack, instr, program)
    assert regs.read_x(2) == 0xAABBCCDD


def test_byte_load_store_zero_extend(regs, stack):
    regs.write_x(11, 0x1FF)
    instr, program = _single("STRB X11, [SP, #1]")
    exec_strb(regs, stack, instr, program)
    assert stack.read8(1) == 0xFF
    assert stack.read8(2) == 0

    regs.write_x(8, 0xFFFFFFFF_FFFFFFFF)
    instr, program = _single("LDRB W8, [SP, #1]")
    exec_ldrb(regs, stack, instr, program)
    assert regs.read_x(8) == 0xFF


def test_register_index_with_shift(regs, stack):
    regs.write_x(1, 16)
    regs.write_x(2, 3)
    regs.write_x(5, 0x55)
    instr, program = _single("STRB X5, [X1, X2, LSL #2]")
    exec_strb(regs, stack, instr, program)
    assert stack.read8(16 + (3 << 2)) == 0x55


def test_stack_window_edges(regs, stack):
    regs.write_x(0, 0xAB)
    instr, program = _single("STR X0, [SP, #248]")
    exec_str(regs, stack, instr, program)
    assert stack.read8(248) == 0xAB

    instr, program = _single("STR X0, [SP, #252]")
    with pytest.raises(MemoryBoundsError):
        exec_str(regs, stack, instr, program)
    assert stack.read_bytes(252, 4) == bytes(4)

    instr, program = _single("LDR X1, [SP, #-8]")
    with pytest.raises(MemoryBoundsError):
        exec_ldr(regs, stack, instr, program)


def test_unknown_base_or_index_is_invalid_operand(regs, stack):
    instr, program = _single("LDR X0, [foo]")
    with pytest.raises(InvalidOperand):
        exec_ldr(regs, stack, instr, program)

    instr, program = _single("LDR X0, [SP, bar]")
    with pytest.raises(InvalidOperand):
        exec_ldr(regs, stack, instr, program)


def test_unconditional_branch_resolves_label(regs, stack):
    program = parse_assembly("B end\nNOP\nend: RET")
    result = exec_b(regs, stack, program.instructions[0], program)
    assert result.next_pc == 8


def test_branch_to_hex_literal(regs, stack):
    instr, program = _single("B 0x10")
    assert exec_b(regs, stack, instr, program).next_pc == 16


def test_branch_to_missing_label_raises(regs, stack):
    instr, program = _single("B nowhere")
    with pytest.raises(UndefinedLabelError):
        exec_b(regs, stack, instr, program)


def test_conditional_branches_follow_flags(regs, stack):
    program = parse_assembly("B.GT target\nB.LE target\ntarget: RET")
    gt, le = program.instructions[0], program.instructions[1]

    regs.set_flag("Z", 0)
    assert exec_b_gt(regs, stack, gt, program).next_pc == 8
    assert exec_b_le(regs, stack, le, program).next_pc is None

    regs.set_flag("Z", 1)
    assert exec_b_gt(regs, stack, gt, program).next_pc is None
    assert exec_b_le(regs, stack, le, program).next_pc == 8

    regs.set_flag("Z", 0)
    regs.set_flag("N", 1)
    assert exec_b_gt(regs, stack, gt, program).next_pc is None
    assert exec_b_le(regs, stack, le, program).next_pc == 8


def test_untaken_conditional_branch_ignores_missing_label(regs, stack):
    instr, program = _single("B.GT missing")
    regs.set_flag("Z", 1)
    assert exec_b_gt(regs, stack, instr, program).next_pc is None

    regs.set_flag("Z", 0)
    with pytest.raises(UndefinedLabelError):
        exec_b_gt(regs, stack, instr, program)


def test_ret_halts_without_next_pc(regs, stack):
    instr, program = _single("RET")
    result = exec_ret(regs, stack, instr, program)
    assert result.halt
    assert result.next_pc is None


def test_executor_rejects_wrong_operand_type(regs, stack):
    # XMOV has no decode-time validator, so the bad shape reaches the executor.
    instr, program = _single("XMOV #1, #2")
    with pytest.raises(InvalidOperand):
        exec_mov(regs, stack, instr, program)
