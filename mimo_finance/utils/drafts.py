from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from mimo_finance.core import Service, as_decimal


def apply_line_drafts(
    lines: list[Service],
    drafts: Mapping[str, Any] | None,
    reason: str = "Line edit",
) -> tuple[list[Service], list[dict[str, Any]]]:
    """
    Overlay unsaved per-line amounts onto resolved service lines.

    Args:
        lines: Resolved service lines of one payment.
        drafts: Draft amounts keyed by service id. A missing or None draft keeps
            the stored ``final_value``.
        reason: Recorded on every audit entry.

    Returns:
        (effective_lines, audit_log)
        effective_lines: Copies of the lines with draft amounts applied; inputs are not mutated.
        audit_log: One entry per line whose amount changed.
    """
    effective: list[Service] = []
    audit_log: list[dict[str, Any]] = []

    if not drafts:
        return list(lines), audit_log

    for line in lines:
        draft = drafts.get(line.id) if line.id is not None else None
        if draft is None:
            effective.append(line)
            continue

        new_value = as_decimal(draft)
        if new_value == line.final_value:
            effective.append(line)
            continue

        effective.append(replace(line, final_value=new_value))
        audit_log.append(
            {
                "service_id": line.id,
                "original_value": line.final_value,
                "corrected_value": new_value,
                "reason": reason,
            }
        )

    return effective, audit_log
