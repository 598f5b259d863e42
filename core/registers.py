from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

from core.errors import InvalidRegisterIndex
from core.model import RegisterRef, RegKind


GPR_COUNT = 31
ZR_INDEX = 31
FLAG_ORDER = ["N", "Z", "C", "V"]
REGISTER_ORDER = [f"X{n}" for n in range(GPR_COUNT)] + ["SP", "PC"]

_GPR_RE = re.compile(r"^([XW])(\d+)$")


def clamp_u64(value: int) -> int:
    return value & 0xFFFFFFFFFFFFFFFF


def clamp_u32(value: int) -> int:
    return value & 0xFFFFFFFF


def is_register_name(token: str) -> bool:
    upper = token.strip().upper()
    return upper in {"SP", "XZR", "WZR"} or bool(_GPR_RE.match(upper))


def parse_register(token: str) -> RegisterRef:
    upper = token.strip().upper()
    if upper == "SP":
        return RegisterRef(RegKind.STACK_POINTER, None, 64)
    if upper == "XZR":
        return RegisterRef(RegKind.ZERO, ZR_INDEX, 64)
    if upper == "WZR":
        return RegisterRef(RegKind.ZERO, ZR_INDEX, 32)
    match = _GPR_RE.match(upper)
    if not match:
        raise InvalidRegisterIndex(f"Not a register: {token}")
    index = int(match.group(2))
    if index >= GPR_COUNT:
        raise InvalidRegisterIndex(f"Register index out of range: {token}")
    return RegisterRef(RegKind.GENERAL, index, 32 if match.group(1) == "W" else 64)


@dataclass
class RegisterFile:
    x: List[int] = field(default_factory=lambda: [0] * GPR_COUNT)
    sp: int = 0
    pc: int = 0
    flags: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in FLAG_ORDER})

    def reset(self) -> None:
        self.x = [0] * GPR_COUNT
        self.sp = 0
        self.pc = 0
        self.flags = {name: 0 for name in FLAG_ORDER}

    def _check_index(self, n: int) -> None:
        if not 0 <= n <= ZR_INDEX:
            raise InvalidRegisterIndex(f"Register index out of range: {n}")

    def read_x(self, n: int) -> int:
        self._check_index(n)
        if n == ZR_INDEX:
            return 0
        return self.x[n]

    def write_x(self, n: int, value: int) -> None:
        self._check_index(n)
        if n == ZR_INDEX:
            return
        self.x[n] = clamp_u64(value)

    def read_w(self, n: int) -> int:
        return clamp_u32(self.read_x(n))

    def write_w(self, n: int, value: int) -> None:
        self._check_index(n)
        if n == ZR_INDEX:
            return
        self.x[n] = clamp_u32(value)

    def read_sp(self) -> int:
        return self.sp

    def write_sp(self, value: int) -> None:
        self.sp = clamp_u64(value)

    def read_pc(self) -> int:
        return self.pc

    def write_pc(self, value: int) -> None:
        self.pc = clamp_u64(value)

    def get_flag(self, name: str) -> int:
        key = name.upper()
        if key not in self.flags:
            raise KeyError(f"Unknown flag: {name}")
        return self.flags[key]

    def set_flag(self, name: str, value: bool | int) -> None:
        key = name.upper()
        if key not in self.flags:
            raise KeyError(f"Unknown flag: {name}")
        self.flags[key] = 1 if value else 0

    def read(self, ref: RegisterRef) -> int:
        """Read a register at the width named by ``ref``."""
        if ref.kind == RegKind.STACK_POINTER:
            return self.read_sp()
        if ref.kind == RegKind.ZERO:
            return 0
        if ref.width == 32:
            return self.read_w(ref.index)
        return self.read_x(ref.index)

    def write(self, ref: RegisterRef, value: int) -> None:
        """Write a register; 32-bit views zero-extend into the backing register."""
        if ref.kind == RegKind.STACK_POINTER:
            self.write_sp(value)
        elif ref.kind == RegKind.ZERO:
            return
        elif ref.width == 32:
            self.write_w(ref.index, value)
        else:
            self.write_x(ref.index, value)

    def get_reg(self, name: str) -> int:
        upper = name.strip().upper()
        if upper == "PC":
            return self.pc
        return self.read(parse_register(upper))

    def set_reg(self, name: str, value: int) -> None:
        upper = name.strip().upper()
        if upper == "PC":
            self.write_pc(value)
            return
        self.write(parse_register(upper), value)
