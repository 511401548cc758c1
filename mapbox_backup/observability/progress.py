"""Console progress marks for listings and artifact fan-outs.

Each category prints one line: a dot per received page and the item
count for listings, or a mark per item for artifact groups:

    Styles List...12 ✔
    Style Documents ..-..✖.. ⚠ 7/8
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console


@dataclass
class ProgressLine:
    """Counters and marks for one progress line."""

    console: Console
    description: str
    enabled: bool = True
    _completed: int = field(default=0, init=False)
    _failed: int = field(default=0, init=False)
    _skipped: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self._write(f"{self.description} ")

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def skipped(self) -> int:
        return self._skipped

    @property
    def processed(self) -> int:
        """Total items processed (completed + failed + skipped)."""
        return self._completed + self._failed + self._skipped

    def _write(self, text: str) -> None:
        if self.enabled:
            self.console.print(text, end="", highlight=False, soft_wrap=True)

    def page(self) -> None:
        self._write(".")

    def success(self) -> None:
        self._completed += 1
        self._write("[green].[/green]")

    def skip(self) -> None:
        self._skipped += 1
        self._write("[yellow]-[/yellow]")

    def fail(self) -> None:
        self._failed += 1
        self._write("[red]✖[/red]")

    def finish_listing(self, count: int, with_errors: bool = False) -> None:
        """End a listing line with the item count; ⚠ if pages reported errors."""
        mark = "[yellow]⚠[/yellow]" if with_errors else "[green]✔[/green]"
        self._write(f"{count} {mark}\n")

    def abort(self) -> None:
        self._write("[red]✖[/red]\n")

    def finish(self) -> None:
        """End the line with ✔, or ⚠ and a done/total tally on failures."""
        if self._failed:
            done = self._completed + self._skipped
            self._write(f" [yellow]⚠[/yellow] {done}/{self.processed}\n")
        else:
            self._write(" [green]✔[/green]\n")


@dataclass
class ProgressReporter:
    """Factory for progress lines sharing one console."""

    console: Console = field(default_factory=Console)
    enabled: bool = True

    def line(self, description: str) -> ProgressLine:
        return ProgressLine(console=self.console, description=description, enabled=self.enabled)
