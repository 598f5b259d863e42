from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List

from core.errors import InvalidRegisterIndex, ParseError
from core.model import AsmInstruction, Program
from core.parser import decode_line, strip_comment

logger = logging.getLogger(__name__)

LABEL_RE = re.compile(r"^([^\s:]+)\s*:")


def build_program(lines: Iterable[str]) -> Program:
    """Assemble source lines into a Program.

    Labels map to the address of the next emitted instruction, so a label on
    its own line and a label sharing a line with an instruction behave the
    same. A label after the last instruction points at the end address, and a
    label defined twice keeps its last definition.
    """
    instructions: List[AsmInstruction] = []
    labels: Dict[str, int] = {}

    for idx, raw_line in enumerate(lines, start=1):
        raw_line = raw_line.rstrip("\r\n")
        working = strip_comment(raw_line).strip()
        next_addr = len(instructions) * 4
        while True:
            match = LABEL_RE.match(working)
            if not match:
                break
            label = match.group(1).upper()
            if label in labels:
                logger.warning("Line %d: label %s redefined, using 0x%X", idx, label, next_addr)
            labels[label] = next_addr
            working = working[match.end():].strip()
            if not working:
                break
        if not working:
            continue

        try:
            decoded = decode_line(working, idx)
        except (ParseError, InvalidRegisterIndex) as exc:
            raise type(exc)(exc.message, idx, raw_line) from exc
        if decoded is None:
            continue
        instructions.append(
            AsmInstruction(
                address=next_addr,
                index=len(instructions) + 1,
                instruction=replace(decoded, text=raw_line),
            )
        )

    logger.debug("Built program: %d instructions, %d labels", len(instructions), len(labels))
    return Program(instructions=instructions, labels=labels)


def parse_assembly(text: str) -> Program:
    return build_program(text.splitlines())


def build_program_from_file(path: str | Path) -> Program:
    source = Path(path)
    with source.open("r", encoding="utf-8") as handle:
        lines = handle.read().splitlines()
    logger.info("Assembling %s", source)
    return build_program(lines)
