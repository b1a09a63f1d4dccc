"""
Structured event logging on top of the standard library logger.

Services keep a module-level ``logger = logging.getLogger(__name__)`` and emit
named events with keyword fields:

    log_event(logger, logging.INFO, "hir.calculated", user_id=user_id, score=72)

The rendered message is ``hir.calculated score=72 user_id=...`` and the raw
values travel in ``record.event`` / ``record.fields`` so handlers and formatters can
pick them up without parsing the message.
"""

import logging
from typing import Any


def _render(value: Any) -> str:
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    if hasattr(value, 'value') and isinstance(getattr(value, 'value'), str):
        return value.value
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """
    Emit a structured event through ``logger`` at ``level``.

    Fields are sorted by name in the rendered message so log lines are stable
    across runs.
    """
    if not logger.isEnabledFor(level):
        return
    rendered = ' '.join(f"{key}={_render(fields[key])}" for key in sorted(fields))
    message = f"{event} {rendered}" if rendered else event
    logger.log(
        level,
        message,
        exc_info=exc_info,
        extra={'event': event, 'fields': fields},
    )

