"""Terminal implementation of the interaction surface using click and rich."""

from typing import Any, Optional, Sequence

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from branch_rescue.core.preview import InteractionSurface
from branch_rescue.core.runner import CommandRunner


class ConsoleInteraction(InteractionSurface):
    """Prompts on the terminal; Ctrl+C or EOF dismisses a prompt."""

    def __init__(self, runner: CommandRunner, console: Optional[Console] = None):
        self.runner = runner
        self.console = console or Console()

    def confirm(self, prompt: str) -> bool:
        try:
            return click.confirm(prompt, default=False)
        except click.Abort:
            return False

    def choose(self, prompt: str, options: Sequence[Any]) -> Optional[Any]:
        if not options:
            return None

        table = Table(title=prompt, show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", style="bold")
        table.add_column("Option")
        table.add_column("", style="dim")

        for index, option in enumerate(options, start=1):
            table.add_row(str(index), option.label, getattr(option, "description", ""))

        self.console.print()
        self.console.print(table)

        try:
            selection = click.prompt(
                "Select an option (0 to dismiss)",
                type=click.IntRange(0, len(options)),
                default=0,
                show_default=False,
            )
        except click.Abort:
            return None

        if selection == 0:
            return None
        return options[selection - 1]

    def open_side_by_side_diff(
        self,
        repo_path: str,
        path: str,
        ref_a: str,
        ref_b: str,
        path_b: Optional[str] = None,
    ) -> None:
        path_b = path_b or path
        left = self.runner.show_file(repo_path, ref_a, path)
        right = self.runner.show_file(repo_path, ref_b, path_b)
        lexer = Syntax.guess_lexer(path, code=left or right or "")

        title = path if path_b == path else f"{path_b} -> {path}"
        table = Table(title=title, show_lines=True, expand=True)
        table.add_column(f"{ref_a[:12]}:{path}", ratio=1)
        table.add_column(f"{ref_b[:12]}:{path_b}", ratio=1)
        table.add_row(
            self._render_side(left, lexer),
            self._render_side(right, lexer),
        )

        self.console.print()
        self.console.print(table)

    def _render_side(self, content: Optional[str], lexer: str) -> Any:
        if content is None:
            return "[dim](file absent)[/dim]"
        return Syntax(content, lexer, line_numbers=True, word_wrap=True)
