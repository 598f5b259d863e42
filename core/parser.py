from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence

from core.errors import InvalidRegisterIndex, ParseError
from core.model import DecodedInstruction, MemoryRef, Operand
from core.registers import is_register_name, parse_register


IMM_RE = re.compile(r"^[+-]?(0[xX][0-9A-Fa-f]+|\d+)$")
SHIFT_RE = re.compile(r"^LSL\s+#?\s*(0[xX][0-9A-Fa-f]+|\d+)$", re.IGNORECASE)

Validator = Callable[[str, List[Operand], int, str], None]

VALIDATORS: Dict[str, Validator] = {}


def register_validator(mnemonic: str, validator: Validator) -> None:
    VALIDATORS[mnemonic.upper()] = validator


def strip_comment(line: str) -> str:
    cut = len(line)
    for marker in ("//", ";"):
        pos = line.find(marker)
        if pos != -1:
            cut = min(cut, pos)
    return line[:cut]


def parse_immediate(raw: str) -> int:
    text = raw.strip()
    if text.startswith("#"):
        text = text[1:].strip()
    if not IMM_RE.match(text):
        raise ParseError(f"Invalid immediate: {raw}")
    sign = -1 if text.startswith("-") else 1
    digits = text.lstrip("+-")
    if digits.lower().startswith("0x"):
        return sign * int(digits, 16)
    return sign * int(digits, 10)


def split_operands(text: str) -> List[str]:
    items: List[str] = []
    current: List[str] = []
    depth = 0
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            if depth > 0:
                depth -= 1
        if ch == "," and depth == 0:
            items.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    item = "".join(current).strip()
    if item or items:
        items.append(item)
    return items


def _parse_memory(raw: str) -> MemoryRef:
    inner = raw[1:-1].strip()
    parts = split_operands(inner)
    if not parts or not parts[0]:
        raise ParseError(f"Missing base register: {raw}")
    base_text = parts[0]
    base = parse_register(base_text) if is_register_name(base_text) else None
    if len(parts) == 1:
        return MemoryRef(base=base, base_text=base_text)

    offset_text = parts[1]
    if not offset_text:
        raise ParseError(f"Empty offset: {raw}")
    shift = 0
    if len(parts) == 3:
        match = SHIFT_RE.match(parts[2])
        if not match:
            raise ParseError(f"Unsupported shift: {parts[2]}")
        shift = parse_immediate(match.group(1))
    elif len(parts) > 3:
        raise ParseError(f"Too many memory operand parts: {raw}")

    if offset_text.startswith("#") or IMM_RE.match(offset_text):
        if shift:
            raise ParseError(f"Shift needs an index register: {raw}")
        return MemoryRef(base=base, base_text=base_text, offset=parse_immediate(offset_text))
    index = parse_register(offset_text) if is_register_name(offset_text) else None
    return MemoryRef(base=base, base_text=base_text, index=index, index_text=offset_text, shift=shift)


def classify(token: str) -> Operand:
    raw = token.strip()
    if raw.startswith("#"):
        return Operand(type="imm", value=parse_immediate(raw), text=raw)
    if raw.startswith("[") and raw.endswith("]"):
        return Operand(type="mem", value=_parse_memory(raw), text=raw)
    if is_register_name(raw):
        return Operand(type="reg", value=parse_register(raw), text=raw)
    return Operand(type="label", value=raw, text=raw)


def _expect_operands(mnemonic: str, operands: Sequence[Operand], count: int, line_no: int, text: str) -> None:
    if len(operands) != count:
        raise ParseError(f"{mnemonic} expects {count} operands, got {len(operands)}", line_no, text)


def _expect_type(
    mnemonic: str, operand: Operand, types: Sequence[str], position: int, line_no: int, text: str
) -> None:
    if operand.type not in types:
        expected = " or ".join(types)
        raise ParseError(
            f"{mnemonic} operand {position} must be {expected}: {operand.text}",
            line_no,
            text,
        )


def _no_operands(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    _expect_operands(mnemonic, operands, 0, line_no, text)


def _ret_form(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    if len(operands) > 1:
        raise ParseError(f"{mnemonic} expects at most 1 operand", line_no, text)
    if operands:
        _expect_type(mnemonic, operands[0], ("reg",), 1, line_no, text)


def _move_form(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    _expect_operands(mnemonic, operands, 2, line_no, text)
    _expect_type(mnemonic, operands[0], ("reg",), 1, line_no, text)
    _expect_type(mnemonic, operands[1], ("reg", "imm"), 2, line_no, text)


def _three_operand_form(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    _expect_operands(mnemonic, operands, 3, line_no, text)
    _expect_type(mnemonic, operands[0], ("reg",), 1, line_no, text)
    _expect_type(mnemonic, operands[1], ("reg",), 2, line_no, text)
    _expect_type(mnemonic, operands[2], ("reg", "imm"), 3, line_no, text)


def _load_store_form(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    _expect_operands(mnemonic, operands, 2, line_no, text)
    _expect_type(mnemonic, operands[0], ("reg",), 1, line_no, text)
    _expect_type(mnemonic, operands[1], ("mem",), 2, line_no, text)


def _branch_form(mnemonic: str, operands: List[Operand], line_no: int, text: str) -> None:
    _expect_operands(mnemonic, operands, 1, line_no, text)
    _expect_type(mnemonic, operands[0], ("label",), 1, line_no, text)


def decode_line(line: str, line_no: int = 0) -> Optional[DecodedInstruction]:
    working = strip_comment(line).strip()
    if not working:
        return None

    parts = working.split(None, 1)
    mnemonic = parts[0].upper()
    operands: List[Operand] = []
    if len(parts) > 1:
        raw_operands = split_operands(parts[1])
        if any(not op for op in raw_operands):
            raise ParseError(f"Empty operand in: {working}", line_no, line.rstrip("\n"))
        try:
            operands = [classify(op) for op in raw_operands]
        except (ParseError, InvalidRegisterIndex) as exc:
            raise type(exc)(exc.message, line_no, line.rstrip("\n")) from exc

    validator = VALIDATORS.get(mnemonic)
    if validator is not None:
        validator(mnemonic, operands, line_no, line.rstrip("\n"))

    return DecodedInstruction(
        mnemonic=mnemonic,
        operands=tuple(operands),
        line_no=line_no,
        text=line.rstrip("\n"),
    )


register_validator("NOP", _no_operands)
register_validator("RET", _ret_form)
register_validator("MOV", _move_form)
register_validator("CMP", _move_form)
for _mnemonic in ("ADD", "SUB", "AND", "EOR", "MUL"):
    register_validator(_mnemonic, _three_operand_form)
for _mnemonic in ("LDR", "LDRB", "STR", "STRB"):
    register_validator(_mnemonic, _load_store_form)
for _mnemonic in ("B", "B.GT", "B.LE"):
    register_validator(_mnemonic, _branch_form)
