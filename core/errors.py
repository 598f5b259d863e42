from __future__ import annotations

from typing import Optional


class EmulationError(Exception):
    def __init__(self, message: str, line_no: Optional[int] = None, text: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.text = text

    def __str__(self) -> str:
        if self.line_no:
            return f"line {self.line_no}: {self.message}"
        return self.message


class ParseError(EmulationError):
    pass


class InvalidRegisterIndex(EmulationError):
    pass


class InvalidOperand(EmulationError):
    pass


class UndefinedLabelError(EmulationError):
    pass


class MemoryBoundsError(EmulationError):
    pass


class InvalidPC(EmulationError):
    pass
