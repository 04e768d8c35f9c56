"""
Report Renderer
===============
Formats a diagnosis for the terminal with rich.

INTEGRATION CONTRACT:
  Callers supply data only:
    record        : DiagnosticRecord  — extracted fields
    entry         : DiagnosisEntry    — catalog content for the pattern
    context_line  : str | None        — evidence line from the raw text
  The renderer never feeds anything back into classification. Absent
  optional fields (location, system code, evidence, extra) drop their rows.

All output goes to the console handed in (stderr by default), so the child's
relayed stdout stays untouched.
"""
from typing import Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from funerr.core.remediation_catalog import DiagnosisEntry
from funerr.models.diagnostic_record import DiagnosticRecord


def make_console(no_color: bool = False) -> Console:
    """Console used for reports: stderr, no auto-highlighting."""
    # None lets rich fall back to the NO_COLOR environment variable
    return Console(stderr=True, no_color=no_color or None, highlight=False)


class ReportRenderer:

    def __init__(self, console: Optional[Console] = None):
        self.console = console or make_console()

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------
    @staticmethod
    def _facts_table(record: DiagnosticRecord, context_line: Optional[str]) -> Table:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold magenta", no_wrap=True)
        table.add_column()

        if record.location is not None:
            table.add_row("📍 Crime Scene", Text(record.location.display(), style="bold"))
        table.add_row("📝 What Broke", Text(f'"{record.message}"', style="yellow"))
        if context_line:
            table.add_row("📄 Evidence", Text(f"{context_line}...", style="dim"))
        if record.system_code:
            table.add_row("⚙️  Error Code", Text(record.system_code, style="bold"))
        return table

    @staticmethod
    def _diagnosis_block(entry: DiagnosisEntry) -> Group:
        parts = [
            Text.assemble(
                (f"{entry.icon}  ", ""),
                ("DIAGNOSIS", "bold red"),
                (f"  [{entry.category}]", "dim"),
            ),
            Text(f"   {entry.summary}", style="red"),
        ]
        if entry.extra:
            parts.append(Text(f"   {entry.extra}", style="dim"))
        return Group(*parts)

    @staticmethod
    def _remedy_block(entry: DiagnosisEntry) -> Group:
        return Group(
            Text("💡 HOW TO FIX", style="bold cyan"),
            Text(f"   {entry.remedy}"),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def render(
        self,
        record: DiagnosticRecord,
        entry: DiagnosisEntry,
        context_line: Optional[str] = None,
        stdout_had_content: bool = False,
    ) -> None:
        """Print the full diagnosis report."""
        if stdout_had_content:
            self.console.print()

        self.console.print()
        self.console.print(
            Panel(
                self._facts_table(record, context_line),
                title=Text(f" {record.kind.upper()} ", style="bold white on red"),
                title_align="left",
                border_style="bold red",
            )
        )
        self.console.print(self._diagnosis_block(entry))
        self.console.print(Rule(style="cyan"))
        self.console.print(self._remedy_block(entry))
        self.console.print()

    def render_no_details(self, exit_code: int) -> None:
        self.console.print(
            Text(f"Process exited with code {exit_code} but no error details.", style="bold red")
        )

    def render_launch_error(self, message: str) -> None:
        self.console.print(Text.assemble(("❌ Error: ", "bold red"), (message, "")))
