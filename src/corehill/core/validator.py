"""Warrior validation against a length policy.

Syntax and semantics are the simulator's business; this module formats its
diagnostics and enforces the instruction limit. Upload checks use the
loosest limit across all hills while a challenge checks the hill's own
limit, so a warrior can pass one and fail the other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from corehill.core.simulator import Simulator


@dataclass(frozen=True)
class ValidationResult:
    success: bool
    errors: list[str]
    instruction_count: int
    program: Any = None


def length_error(max_length: int, instruction_count: int) -> str:
    return (
        f"Warrior exceeds maximum length of {max_length} instructions "
        f"(has {instruction_count})"
    )


def validate_program(
    simulator: Simulator, source: str, max_length: int
) -> ValidationResult:
    """Parse ``source`` and apply the length limit.

    Succeeds iff the parser succeeds and the instruction count is at most
    ``max_length``. A parse that succeeds but is too long gets exactly one
    extra diagnostic.
    """
    parsed = simulator.parse(source)
    errors = [f"Line {d.line}: {d.message}" for d in parsed.diagnostics]
    success = parsed.success

    if parsed.success and parsed.instruction_count > max_length:
        success = False
        errors.append(length_error(max_length, parsed.instruction_count))

    return ValidationResult(
        success=success,
        errors=errors,
        instruction_count=parsed.instruction_count,
        program=parsed.program if success else None,
    )
