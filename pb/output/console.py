"""Console output abstraction.

The bundler reports progress and failures through ConsoleProtocol instead
of a logger. RichConsole styles the lines for a terminal; under GitHub
Actions it also emits workflow commands, so errors and warnings become run
annotations and every header opens a collapsible log group. MockConsole
records lines for tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "RichConsole",
    "Style",
    "running_in_actions",
]


class Style(Enum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Where every component writes its progress."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def end_group(self) -> None: ...


def running_in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


def _workflow_data(message: str) -> str:
    # Workflow command payloads must stay on one line
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


_RICH_STYLES = {
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.HEADER: "blue bold",
}


class RichConsole:
    """Terminal console backed by rich; errors go to stderr.

    Args:
        annotate: Emit GitHub Actions workflow commands. Defaults to
            `running_in_actions()`.
    """

    def __init__(self, *, annotate: bool | None = None) -> None:
        # Import Rich lazily to keep `pb --version` fast
        from rich.console import Console

        self.annotate = running_in_actions() if annotate is None else annotate
        self._out = Console(highlight=False)
        self._err = Console(stderr=True, highlight=False)
        self._group_open = False

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._out.print(message, style=_RICH_STYLES.get(style), markup=False)

    def success(self, message: str) -> None:
        self._out.print(f"[green]OK[/green] {_escape(message)}")

    def error(self, message: str) -> None:
        if self.annotate:
            self._command(f"::error::{_workflow_data(message)}")
        self._err.print(f"[red bold]error:[/red bold] {_escape(message)}")

    def warning(self, message: str) -> None:
        if self.annotate:
            self._command(f"::warning::{_workflow_data(message)}")
        self._out.print(f"[yellow]warning:[/yellow] {_escape(message)}")

    def info(self, message: str) -> None:
        self._out.print(f"[cyan]info:[/cyan] {_escape(message)}")

    def header(self, message: str) -> None:
        if not self.annotate:
            self._out.print(f"\n[blue bold]{_escape(message)}[/blue bold]")
            return
        self.end_group()
        self._command(f"::group::{_workflow_data(message)}")
        self._group_open = True

    def end_group(self) -> None:
        """Close the log group opened by the last header, if any."""
        if self._group_open:
            self._command("::endgroup::")
            self._group_open = False

    def _command(self, line: str) -> None:
        # Runner parses workflow commands from stdout only
        self._out.print(line, markup=False, highlight=False, soft_wrap=True)


def _escape(message: str) -> str:
    # Asset names and URLs may contain [brackets]
    from rich.markup import escape

    return escape(message)


_PREFIXES = {
    Style.SUCCESS: "OK ",
    Style.ERROR: "error: ",
    Style.WARNING: "warning: ",
    Style.INFO: "info: ",
}


@dataclass
class OutputRecord:
    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that captures output for tests.

    Each line is stored with its prefix ("OK ", "error: ", ...) so
    assertions read like the terminal.
    """

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def _record(self, message: str, style: Style) -> None:
        self.outputs.append(OutputRecord(_PREFIXES.get(style, "") + message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._record(message, Style.SUCCESS)

    def error(self, message: str) -> None:
        self._record(message, Style.ERROR)

    def warning(self, message: str) -> None:
        self._record(message, Style.WARNING)

    def info(self, message: str) -> None:
        self._record(message, Style.INFO)

    def header(self, message: str) -> None:
        self._record(message, Style.HEADER)

    def end_group(self) -> None:
        pass

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style is Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style is Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
