"""Console rendering for the copilot.

Everything the core shows to the operator goes through the small
:class:`Display` protocol, so the engine, the interceptor and the chat
loop never touch a rendering library directly.  :class:`ConsoleDisplay`
is the ``rich`` implementation used by the CLI; tests substitute a
recording fake.
"""

from __future__ import annotations

import contextlib
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from copilot.utils import truncate

if TYPE_CHECKING:
    from copilot.tools.registry import ToolSpec


class Display(Protocol):
    """Narrow output/input surface used by the core components."""

    def assistant_begin(self) -> None: ...

    def assistant_fragment(self, text: str) -> None: ...

    def assistant_end(self) -> None: ...

    def panel(self, title: str, body: str, *, style: str = "grey50") -> None: ...

    def note(self, label: str, text: str) -> None: ...

    def link(self, url: str, label: str) -> None: ...

    def error(self, text: str) -> None: ...

    def status(self, message: str) -> contextlib.AbstractContextManager: ...

    def ask(self, prompt: str, default: str | None = None) -> str: ...

    def select(self, title: str, choices: Sequence[str]) -> str: ...

    def functions_table(self, specs: Sequence[ToolSpec]) -> None: ...


class ConsoleDisplay:
    """``rich`` terminal renderer."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ── Chat ─────────────────────────────────────────────────────────

    def intro(self) -> None:
        self.console.print()
        self.console.print(Rule("[bold yellow]Personal Assistant Copilot[/]", style="red"))
        self.console.print(
            "  [bold yellow]•[/] Ask about [bold yellow]certain topics[/] [italic](retrieved via RAG)[/]\n"
            "  [bold yellow]•[/] Have the assistant come up with a [bold yellow]plan for a task[/], "
            "revise it, save it and [bold yellow]visualize it in a flowchart[/]\n"
            "  [bold yellow]•[/] Let it perform [bold yellow]actions[/] "
            "[italic](send an email, search the internet, ...)[/]\n"
            "  Type [bold]quit[/] to exit."
        )
        self.console.print(Rule("[bold yellow]Chat[/]", style="green"))
        self.console.print()

    def assistant_begin(self) -> None:
        self.console.print()
        self.console.print("[bold green italic]AI Assistant[/] [bold green]>[/] ", end="")

    def assistant_fragment(self, text: str) -> None:
        self.console.print(Text(text, style="italic"), end="", soft_wrap=True)

    def assistant_end(self) -> None:
        self.console.print()
        self.console.print()

    # ── Panels and notes ─────────────────────────────────────────────

    def panel(self, title: str, body: str, *, style: str = "grey50") -> None:
        self.console.print()
        self.console.print(
            Panel(
                Text(body, style="dim"),
                title=title,
                box=box.ROUNDED,
                border_style=style,
                expand=True,
            )
        )

    def note(self, label: str, text: str) -> None:
        line = Text()
        line.append(f"{label}:", style="dim grey30 underline")
        line.append(f" {text}", style="dim grey30")
        self.console.print(line)

    def link(self, url: str, label: str) -> None:
        self.console.print(f"   [bold][link={url}]{label}[/link][/bold]")
        self.console.print()

    def error(self, text: str) -> None:
        self.console.print(Text(text, style="bold red"))

    def status(self, message: str) -> contextlib.AbstractContextManager:
        return self.console.status(message, spinner="dots")

    # ── Input ────────────────────────────────────────────────────────

    def ask(self, prompt: str, default: str | None = None) -> str:
        if default is None:
            return Prompt.ask(prompt, console=self.console)
        return Prompt.ask(prompt, console=self.console, default=default)

    def select(self, title: str, choices: Sequence[str]) -> str:
        """Blocking single-choice prompt; returns the chosen entry."""
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column(justify="right", style="green")
        table.add_column()
        for index, choice in enumerate(choices, start=1):
            table.add_row(str(index), choice)
        self.console.print(title)
        self.console.print(table)
        picked = Prompt.ask(
            "Number",
            console=self.console,
            choices=[str(i) for i in range(1, len(choices) + 1)],
            show_choices=False,
        )
        return choices[int(picked) - 1]

    # ── Catalog ──────────────────────────────────────────────────────

    def functions_table(self, specs: Sequence[ToolSpec]) -> None:
        table = Table()
        table.add_column("Function Name")
        table.add_column("Description")
        table.add_column("Parameters")
        for spec in specs:
            table.add_row(
                spec.name,
                truncate(spec.description, 70, add_cutoff_text=False),
                ", ".join(p.name for p in spec.parameters),
            )
        self.console.print(table)
        self.console.print()

