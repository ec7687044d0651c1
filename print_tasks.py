"""Print task model for the background print queue.

Requests that answer before printing (the diagnostic test print) put a task on
the queue; the queue worker pushes it through the delivery fallback chain after
the response has already been sent.
"""

from __future__ import annotations

from dataclasses import dataclass

from delivery import Drawing


@dataclass(frozen=True)
class PrintTask:
    label: str
    draw: Drawing
