from core.formatting import (
    SEPARATOR,
    describe_memory_operand,
    format_decoded,
    format_registers,
    format_stack,
    hex64,
)
from core.parser import classify, decode_line
from core.registers import RegisterFile
from core.stack import StackMemory


def test_hex64_pads_and_wraps():
    assert hex64(5) == "0x0000000000000005"
    assert hex64(-1) == "0xffffffffffffffff"


def test_memory_operand_descriptions():
    assert describe_memory_operand(classify("[SP, #32]")) == "[SP, #32] --> SP + 32"
    assert describe_memory_operand(classify("[X1, X2]")) == "[X1, X2] --> X1 + X2"
    assert describe_memory_operand(classify("[X1, X2, LSL #3]")) == "[X1, X2, LSL #3] --> X1 + (X2 << 3)"
    assert describe_memory_operand(classify("[SP]")) == "[SP]"
    assert describe_memory_operand(classify("X0")) == "X0"


def test_format_decoded_lists_operands():
    text = format_decoded(3, decode_line("STR X6, [SP, #32]"))
    assert text.startswith(SEPARATOR)
    assert "Instruction #3:" in text
    assert "Instruction: STR" in text
    assert "Operand #1: X6" in text
    assert "Operand #2: [SP, #32] --> SP + 32" in text


def test_format_registers_rows_and_flags():
    regs = RegisterFile()
    regs.write_x(0, 5)
    regs.write_x(30, 0xAB)
    regs.set_flag("Z", 1)
    text = format_registers(regs)
    assert "X0: 0x0000000000000005 X10: 0x0000000000000000 X20: 0x0000000000000000" in text
    assert "X30: 0x00000000000000ab" in text
    assert "Processor State Z bit: 1" in text
    assert "Processor State N bit: 0" in text


def test_format_stack_rows_ascii_and_end_address():
    stack = StackMemory(0, 32)
    stack.write8(0, ord("A"))
    stack.write8(1, 0x0F)
    text = format_stack(stack)
    lines = [line for line in text.splitlines() if line]
    assert lines[-1] == "00000020"
    row = next(line for line in lines if line.startswith("00000000 "))
    assert row.startswith("00000000 41 0f 00")
    assert row.endswith("|A...............|")
    assert any(line.startswith("00000010 ") for line in lines)
