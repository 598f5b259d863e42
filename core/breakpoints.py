from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from core.errors import EmulationError
from core.model import Program
from core.parser import parse_immediate
from core.registers import FLAG_ORDER, RegisterFile, clamp_u64, parse_register


class BreakpointType(Enum):
    ADDRESS = "Address"
    TEMPORARY_ADDRESS = "Temporary"
    REGISTER_CONDITION = "Register"
    FLAG_CONDITION = "Flag"


ADDRESS_TYPES = {BreakpointType.ADDRESS, BreakpointType.TEMPORARY_ADDRESS}
REQUEST_KINDS = ("Address", "Register", "Flag")


@dataclass
class Breakpoint:
    id: int
    type: BreakpointType
    enabled: bool
    address: Optional[int]
    name: Optional[str]
    op: Optional[str]
    value: Optional[int]
    hit_count: int = 0
    last_hit_timestamp: Optional[float] = None


class BreakpointManager:
    def __init__(self) -> None:
        self._next_id = 1
        self._breakpoints: dict[int, Breakpoint] = {}
        self._valid_addresses: Optional[set[int]] = None
        self._callbacks: List[Callable[[], None]] = []

    def on_change(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def _emit_change(self) -> None:
        for callback in list(self._callbacks):
            callback()

    def _new_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def list_all(self) -> list[Breakpoint]:
        return sorted(self._breakpoints.values(), key=lambda bp: bp.id)

    def get(self, bp_id: int) -> Optional[Breakpoint]:
        return self._breakpoints.get(bp_id)

    def address_breakpoints(self) -> list[Breakpoint]:
        return [bp for bp in self.list_all() if bp.type in ADDRESS_TYPES]

    def add_address(self, address: int, temporary: bool = False) -> int:
        bp_type = BreakpointType.TEMPORARY_ADDRESS if temporary else BreakpointType.ADDRESS
        for bp in self._breakpoints.values():
            if bp.type == bp_type and bp.address == address:
                if not bp.enabled:
                    bp.enabled = True
                    self._emit_change()
                return bp.id
        bp = Breakpoint(
            id=self._new_id(),
            type=bp_type,
            enabled=True,
            address=address,
            name=None,
            op=None,
            value=None,
        )
        self._breakpoints[bp.id] = bp
        self._emit_change()
        return bp.id

    def toggle_address(self, address: int) -> bool:
        for bp_id, bp in list(self._breakpoints.items()):
            if bp.type == BreakpointType.ADDRESS and bp.address == address:
                del self._breakpoints[bp_id]
                self._emit_change()
                return False
        self.add_address(address)
        return True

    def _add_condition(self, bp_type: BreakpointType, name: str, value: int) -> int:
        bp = Breakpoint(
            id=self._new_id(),
            type=bp_type,
            enabled=True,
            address=None,
            name=name.upper(),
            op="==",
            value=value,
        )
        self._breakpoints[bp.id] = bp
        self._emit_change()
        return bp.id

    def add_register_condition(self, name: str, value: int) -> int:
        return self._add_condition(BreakpointType.REGISTER_CONDITION, name, value)

    def add_flag_condition(self, name: str, value: int) -> int:
        if name.upper() not in FLAG_ORDER:
            raise ValueError(f"Unknown flag: {name}")
        if value not in (0, 1):
            raise ValueError("Flags can only be 0 or 1")
        return self._add_condition(BreakpointType.FLAG_CONDITION, name, value)

    def add_request(
        self, kind: str, name: str, raw_value: str, program: Optional[Program] = None, temporary: bool = False
    ) -> int:
        """Add a breakpoint from user text.

        Address targets are a label of ``program`` or a number, and must be
        word aligned. Register names take any X, W, SP, XZR or PC spelling;
        values accept the immediate syntax of the assembler. Raises ValueError.
        """
        raw = raw_value.strip()
        try:
            if kind == "Address":
                target = program.get_label(raw) if program is not None and raw else None
                if target is None:
                    target = parse_immediate(raw)
                if target < 0 or target % 4:
                    raise ValueError(f"Address must be a non-negative multiple of 4: {raw}")
                return self.add_address(target, temporary=temporary)
            if kind == "Register":
                upper = name.strip().upper()
                value = parse_immediate(raw)
                if upper == "PC":
                    return self.add_register_condition(upper, clamp_u64(value))
                ref = parse_register(upper)
                return self.add_register_condition(ref.name, value & ((1 << ref.width) - 1))
            if kind == "Flag":
                return self.add_flag_condition(name.strip(), parse_immediate(raw))
        except EmulationError as exc:
            raise ValueError(exc.message) from exc
        raise ValueError(f"Unknown breakpoint kind: {kind}")

    def set_enabled(self, bp_id: int, enabled: bool) -> None:
        bp = self._breakpoints.get(bp_id)
        if not bp or bp.enabled == enabled:
            return
        bp.enabled = enabled
        self._emit_change()

    def remove(self, bp_id: int) -> None:
        if bp_id in self._breakpoints:
            del self._breakpoints[bp_id]
            self._emit_change()

    def clear(self) -> None:
        self._breakpoints.clear()
        self._emit_change()

    def increment_hit(self, bp_id: int) -> bool:
        """Count a hit; returns True when a temporary breakpoint was consumed."""
        bp = self._breakpoints.get(bp_id)
        if not bp:
            return False
        bp.hit_count += 1
        bp.last_hit_timestamp = time.time()
        if bp.type == BreakpointType.TEMPORARY_ADDRESS:
            del self._breakpoints[bp_id]
            self._emit_change()
            return True
        self._emit_change()
        return False

    def set_valid_addresses(self, addresses: Iterable[int]) -> None:
        self._valid_addresses = set(addresses)
        self._emit_change()

    def address_has_instruction(self, address: Optional[int]) -> bool:
        if address is None:
            return False
        if self._valid_addresses is None:
            return True
        return address in self._valid_addresses

    def should_break(self, pc: int, registers: RegisterFile) -> tuple[bool, Optional[int], str]:
        for bp in self.list_all():
            if not bp.enabled:
                continue
            if bp.type in ADDRESS_TYPES:
                if bp.address == pc and self.address_has_instruction(pc):
                    return True, bp.id, f"{bp.type.value} breakpoint at 0x{pc:X}"
            elif bp.type == BreakpointType.REGISTER_CONDITION:
                if bp.name and bp.value is not None:
                    if registers.get_reg(bp.name) == bp.value:
                        return True, bp.id, f"{bp.name} == 0x{bp.value:X}"
            elif bp.type == BreakpointType.FLAG_CONDITION:
                if bp.name and bp.value is not None:
                    if registers.get_flag(bp.name) == bp.value:
                        return True, bp.id, f"{bp.name} == {bp.value}"
        return False, None, ""

    def to_json(self) -> dict:
        return {
            "next_id": self._next_id,
            "breakpoints": [
                {
                    "id": bp.id,
                    "type": bp.type.value,
                    "enabled": bp.enabled,
                    "address": bp.address,
                    "name": bp.name,
                    "op": bp.op,
                    "value": bp.value,
                    "hit_count": bp.hit_count,
                    "last_hit_timestamp": bp.last_hit_timestamp,
                }
                for bp in self.list_all()
            ],
        }

    def load_json(self, data: dict) -> None:
        self._breakpoints.clear()
        self._next_id = int(data.get("next_id", 1))
        for item in data.get("breakpoints", []):
            try:
                bp_type = BreakpointType(item.get("type", BreakpointType.ADDRESS.value))
            except ValueError:
                bp_type = BreakpointType.ADDRESS
            bp = Breakpoint(
                id=int(item.get("id", self._new_id())),
                type=bp_type,
                enabled=bool(item.get("enabled", True)),
                address=item.get("address"),
                name=item.get("name"),
                op=item.get("op"),
                value=item.get("value"),
                hit_count=int(item.get("hit_count", 0)),
                last_hit_timestamp=item.get("last_hit_timestamp"),
            )
            self._breakpoints[bp.id] = bp
            self._next_id = max(self._next_id, bp.id + 1)
        self._emit_change()
