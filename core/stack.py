from __future__ import annotations

import random
from dataclasses import dataclass, field

from core.errors import MemoryBoundsError


DEFAULT_STACK_SIZE = 256


@dataclass
class StackMemory:
    base: int = 0
    size: int = DEFAULT_STACK_SIZE
    data: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("Stack size must be positive")
        self.data = bytearray(self.size)

    @property
    def end(self) -> int:
        return self.base + self.size

    def contains(self, addr: int, width: int = 1) -> bool:
        return addr >= self.base and addr + width <= self.end

    def _offset(self, addr: int, width: int = 1) -> int:
        if not self.contains(addr, width):
            raise MemoryBoundsError(
                f"Stack access out of bounds: 0x{addr:X}..0x{addr + width:X} "
                f"(stack 0x{self.base:X}..0x{self.end:X})"
            )
        return addr - self.base

    def read8(self, addr: int) -> int:
        return self.data[self._offset(addr)]

    def write8(self, addr: int, value: int) -> None:
        self.data[self._offset(addr)] = value & 0xFF

    def read_bytes(self, addr: int, length: int) -> bytes:
        offset = self._offset(addr, length)
        return bytes(self.data[offset : offset + length])

    def clear(self) -> None:
        self.data = bytearray(self.size)

    def fill_random(self, seed: int = 0xC0FFEE) -> None:
        rng = random.Random(seed)
        self.data = bytearray(rng.randrange(256) for _ in range(self.size))
