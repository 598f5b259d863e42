import pytest

from core.breakpoints import BreakpointManager, BreakpointType
from core.program import parse_assembly
from core.registers import RegisterFile


def test_toggle_address_adds_then_removes():
    manager = BreakpointManager()
    assert manager.toggle_address(8) is True
    assert [bp.address for bp in manager.address_breakpoints()] == [8]
    assert manager.toggle_address(8) is False
    assert manager.list_all() == []


def test_add_address_dedupes_and_reenables():
    manager = BreakpointManager()
    first = manager.add_address(4)
    manager.set_enabled(first, False)
    assert manager.add_address(4) == first
    assert manager.get(first).enabled


def test_should_break_on_address_and_skips_disabled():
    manager = BreakpointManager()
    regs = RegisterFile()
    bp_id = manager.add_address(4)
    assert manager.should_break(0, regs)[0] is False
    hit, hit_id, reason = manager.should_break(4, regs)
    assert hit and hit_id == bp_id
    assert "0x4" in reason
    manager.set_enabled(bp_id, False)
    assert manager.should_break(4, regs)[0] is False


def test_address_without_instruction_never_breaks():
    manager = BreakpointManager()
    manager.add_address(6)
    manager.set_valid_addresses([0, 4, 8])
    assert not manager.address_has_instruction(6)
    assert manager.should_break(6, RegisterFile())[0] is False


def test_register_and_flag_conditions():
    manager = BreakpointManager()
    regs = RegisterFile()
    reg_id = manager.add_register_condition("x3", 0x10)
    flag_id = manager.add_flag_condition("z", 1)

    assert manager.should_break(0, regs)[0] is False
    regs.write_x(3, 0x10)
    assert manager.should_break(0, regs)[1] == reg_id
    regs.write_x(3, 0)
    regs.set_flag("Z", 1)
    assert manager.should_break(0, regs)[1] == flag_id

    with pytest.raises(ValueError):
        manager.add_flag_condition("Q", 1)
    with pytest.raises(ValueError):
        manager.add_flag_condition("N", 2)


def test_temporary_breakpoint_is_consumed_on_hit():
    manager = BreakpointManager()
    temp_id = manager.add_address(12, temporary=True)
    keep_id = manager.add_address(16)
    assert manager.increment_hit(temp_id) is True
    assert manager.get(temp_id) is None
    assert manager.increment_hit(keep_id) is False
    assert manager.get(keep_id).hit_count == 1
    assert manager.get(keep_id).last_hit_timestamp is not None


def test_change_callbacks_fire():
    manager = BreakpointManager()
    calls = []
    manager.on_change(lambda: calls.append(1))
    bp_id = manager.add_address(0)
    manager.remove(bp_id)
    manager.clear()
    assert len(calls) == 3


def test_json_round_trip_keeps_ids_and_types():
    manager = BreakpointManager()
    manager.add_address(4)
    manager.add_register_condition("SP", 0x20)
    manager.add_flag_condition("C", 0)
    data = manager.to_json()

    restored = BreakpointManager()
    restored.load_json(data)
    assert [bp.type for bp in restored.list_all()] == [
        BreakpointType.ADDRESS,
        BreakpointType.REGISTER_CONDITION,
        BreakpointType.FLAG_CONDITION,
    ]
    assert restored.list_all()[1].name == "SP"
    assert restored.add_address(8) == 4


def test_add_request_resolves_labels_and_numbers():
    program = parse_assembly("NOP\nloop: ADD X0, X0, #1\nB loop")
    manager = BreakpointManager()
    by_label = manager.add_request("Address", "", "loop", program=program)
    assert manager.get(by_label).address == 4
    by_number = manager.add_request("Address", "", "0x8", program=program, temporary=True)
    assert manager.get(by_number).type == BreakpointType.TEMPORARY_ADDRESS
    assert manager.add_request("Address", "", "#4") == by_label


@pytest.mark.parametrize("raw", ["6", "-4", "nowhere", ""])
def test_add_request_rejects_bad_addresses(raw):
    manager = BreakpointManager()
    with pytest.raises(ValueError):
        manager.add_request("Address", "", raw, program=parse_assembly("NOP"))
    assert manager.list_all() == []


def test_add_request_normalizes_registers_to_their_width():
    manager = BreakpointManager()
    regs = RegisterFile()
    w_id = manager.add_request("Register", " w3 ", "#-1")
    assert manager.get(w_id).name == "W3"
    assert manager.get(w_id).value == 0xFFFFFFFF
    x_id = manager.add_request("Register", "x4", "-1")
    assert manager.get(x_id).value == 0xFFFFFFFFFFFFFFFF
    pc_id = manager.add_request("Register", "pc", "0x10")
    assert manager.get(pc_id).name == "PC"

    regs.write_x(3, 0xFFFFFFFFFFFFFFFF)
    hit, hit_id, _ = manager.should_break(0, regs)
    assert hit and hit_id == w_id


def test_add_request_rejects_bad_registers_flags_and_kinds():
    manager = BreakpointManager()
    with pytest.raises(ValueError):
        manager.add_request("Register", "X40", "1")
    with pytest.raises(ValueError):
        manager.add_request("Register", "X1", "abc")
    with pytest.raises(ValueError):
        manager.add_request("Flag", "z", "2")
    with pytest.raises(ValueError):
        manager.add_request("Memory", "", "0")
    flag_id = manager.add_request("Flag", "z", "1")
    assert manager.get(flag_id).name == "Z"
    assert len(manager.list_all()) == 1
