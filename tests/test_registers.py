import pytest

from core.errors import InvalidRegisterIndex
from core.model import RegKind
from core.registers import REGISTER_ORDER, RegisterFile, is_register_name, parse_register


def test_parse_register_kinds_and_widths():
    x5 = parse_register("x5")
    assert x5.kind == RegKind.GENERAL and x5.index == 5 and x5.width == 64
    w7 = parse_register("W7")
    assert w7.index == 7 and w7.width == 32
    assert parse_register("sp").kind == RegKind.STACK_POINTER
    assert parse_register("XZR").kind == RegKind.ZERO
    assert parse_register("wzr").width == 32
    assert parse_register("W30").name == "W30"


def test_parse_register_rejects_index_31_and_above():
    with pytest.raises(InvalidRegisterIndex):
        parse_register("X31")
    with pytest.raises(InvalidRegisterIndex):
        parse_register("W99")
    assert is_register_name("X31")
    assert not is_register_name("loop")


def test_zero_register_reads_zero_and_discards_writes(regs):
    regs.write_x(31, 1234)
    assert regs.read_x(31) == 0
    regs.write(parse_register("XZR"), 55)
    assert regs.read(parse_register("XZR")) == 0


def test_out_of_range_index_raises(regs):
    with pytest.raises(InvalidRegisterIndex):
        regs.read_x(32)
    with pytest.raises(InvalidRegisterIndex):
        regs.write_x(-1, 0)


def test_w_write_zero_extends_and_x_write_wraps(regs):
    regs.write_x(3, 0xFFFFFFFFFFFFFFFF)
    regs.write_w(3, 0x1_2345_6789)
    assert regs.read_x(3) == 0x23456789
    regs.write_x(4, -1)
    assert regs.read_x(4) == 0xFFFFFFFFFFFFFFFF
    assert regs.read_w(4) == 0xFFFFFFFF


def test_flags_store_bits_and_reject_unknown(regs):
    regs.set_flag("z", True)
    regs.set_flag("C", 5)
    assert regs.get_flag("Z") == 1
    assert regs.get_flag("c") == 1
    assert regs.get_flag("N") == 0
    with pytest.raises(KeyError):
        regs.get_flag("Q")
    with pytest.raises(KeyError):
        regs.set_flag("Q", 1)


def test_named_access_covers_sp_and_pc():
    regs = RegisterFile()
    regs.set_reg("SP", 0x80)
    regs.set_reg("PC", 0x10)
    regs.set_reg("x1", 7)
    assert regs.get_reg("sp") == 0x80
    assert regs.get_reg("PC") == 0x10
    assert regs.get_reg("W1") == 7
    assert REGISTER_ORDER[-2:] == ["SP", "PC"]
    assert len(REGISTER_ORDER) == 33


def test_reset_clears_everything(regs):
    regs.write_x(0, 1)
    regs.write_sp(8)
    regs.write_pc(4)
    regs.set_flag("N", 1)
    regs.reset()
    assert regs.read_x(0) == 0
    assert regs.read_sp() == 0
    assert regs.read_pc() == 0
    assert regs.get_flag("N") == 0


def test_every_general_register_round_trips(regs):
    for n in range(31):
        regs.write_x(n, 0xDEAD0000 + n)
        assert regs.read_x(n) == 0xDEAD0000 + n
        regs.write_x(n, 0xFFFFFFFFFFFFFFFF)
        regs.write_w(n, n)
        assert regs.read_x(n) == n
