"""Rendering targets: printer command stream and plain-text fallback.

Renderers and document builders only talk to a ``ReceiptTarget``. The same
drawing code therefore produces both the ESC/POS command stream for the
primary device and the plain text handed to the OS print queue.

Plain text conventions (32 columns on 58mm paper):

- alignment is applied by padding to ``config.LINE_WIDTH``
- bold lines are wrapped in ``**...**``
- a rule is a full line of ``-``
- there is no cut; ``cut()`` is a no-op
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol

import config


@dataclass(frozen=True)
class Directive:
    """Single printer directive of a command stream."""

    op: str
    value: Any = None


class ReceiptTarget(Protocol):
    def align(self, align: str) -> None: ...

    def bold(self, enabled: bool) -> None: ...

    def double_height(self, enabled: bool) -> None: ...

    def line(self, text: str = "") -> None: ...

    def rule(self) -> None: ...

    def feed(self, lines: int = 1) -> None: ...

    def cut(self) -> None: ...

    def reset_style(self) -> None: ...


class CommandStream:
    """Ordered list of printer directives."""

    def __init__(self) -> None:
        self.directives: List[Directive] = []

    def _emit(self, op: str, value: Any = None) -> None:
        self.directives.append(Directive(op, value))

    def align(self, align: str) -> None:
        self._emit("align", align)

    def bold(self, enabled: bool) -> None:
        self._emit("bold", bool(enabled))

    def double_height(self, enabled: bool) -> None:
        self._emit("double_height", bool(enabled))

    def line(self, text: str = "") -> None:
        self._emit("line", text)

    def rule(self) -> None:
        self._emit("rule")

    def feed(self, lines: int = 1) -> None:
        self._emit("feed", lines)

    def cut(self) -> None:
        self._emit("cut")

    def reset_style(self) -> None:
        self.bold(False)
        self.align("left")

    def lines(self) -> List[str]:
        """Printed text lines, without styling."""
        return [d.value for d in self.directives if d.op == "line"]

    def __len__(self) -> int:
        return len(self.directives)


class PlainText:
    """Plain-text rendering for environments that only accept raw text."""

    def __init__(self, width: int | None = None) -> None:
        self.width = width or config.LINE_WIDTH
        self._lines: List[str] = []
        self._align = "left"
        self._bold = False

    def align(self, align: str) -> None:
        self._align = align

    def bold(self, enabled: bool) -> None:
        self._bold = bool(enabled)

    def double_height(self, enabled: bool) -> None:
        """Plain text has a single text size."""

    def line(self, text: str = "") -> None:
        if self._bold and text.strip():
            text = f"**{text}**"
        if self._align == "center":
            text = text.center(self.width).rstrip()
        elif self._align == "right":
            text = text.rjust(self.width)
        self._lines.append(text)

    def rule(self) -> None:
        self._lines.append("-" * self.width)

    def feed(self, lines: int = 1) -> None:
        self._lines.extend([""] * lines)

    def cut(self) -> None:
        """Paper cut has no plain-text equivalent."""

    def reset_style(self) -> None:
        self._bold = False
        self._align = "left"

    def getvalue(self) -> str:
        return "".join(f"{line}\n" for line in self._lines)
