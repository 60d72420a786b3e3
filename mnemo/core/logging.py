"""
mnemo.core.logging -- JSON log lines for hosts that ship logs somewhere.

mnemo logs through stdlib ``logging`` under the ``mnemo.*`` tree.  Hosts
that collect logs per agent session can switch that tree to JSON lines,
one object per record, keyed so a session's memory activity can be
filtered out of a shared stream::

    {"ts": "...Z", "level": "INFO", "logger": "mnemo.pressure.intervention",
     "msg": "Intervention sent for ses_1 at 93%", "session_id": "ses_1"}

Enable it with ``Config.structured_logging`` or directly::

    configure_logging(structured=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import time

#: Record attributes (set via ``extra=``) copied into the JSON object.
CONTEXT_FIELDS = ("session_id", "tool", "category", "pressure_level")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Always present: ``ts`` (UTC, millisecond precision), ``level``,
    ``logger``, ``msg`` and ``where`` (``module:func:line``).  Context
    fields from ``CONTEXT_FIELDS`` are added when the call site passed
    them, and ``exception`` when the record carries a traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
        entry = {
            "ts": f"{stamp}.{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                entry[name] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    structured: bool = False,
    level: str = "INFO",
    logger_name: str = "mnemo",
) -> None:
    """Set the level of the ``mnemo`` logger tree, optionally switching it to JSON.

    With ``structured=True`` a single stderr handler using
    ``StructuredFormatter`` is installed (calling again replaces it, other
    handlers are left in place) and propagation to the root logger stops,
    so host formatting does not print every record twice.
    """
    tree = logging.getLogger(logger_name)
    tree.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not structured:
        return

    for h in list(tree.handlers):
        if isinstance(h.formatter, StructuredFormatter):
            tree.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    tree.addHandler(handler)
    tree.propagate = False
