"""Build Deck - a TUI for running knowpack builds interactively."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.message import Message
from textual.widgets import (
    Button,
    DataTable,
    DirectoryTree,
    Footer,
    Header,
    Input,
    Label,
    Log,
    Rule,
    Static,
)

from knowpack.config import load_config
from knowpack.errors import ConfigError
from knowpack.models import BuildManifest, BuildStatus
from knowpack.orchestrator import BuildOrchestrator, BuildState

STAGES = [
    BuildState.LOADING,
    BuildState.VALIDATING,
    BuildState.RESOLVING,
    BuildState.SELECTING,
    BuildState.RENDERING,
    BuildState.WRITING,
]


@dataclass(frozen=True)
class BuildStats:
    """Snapshot of a build shown in the stats panel."""

    state: BuildState = BuildState.IDLE
    status: str = ""
    valid: int = 0
    invalid: int = 0
    load_errors: int = 0
    dangling: int = 0
    cycles: int = 0
    selected: int = 0
    artifacts: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed(self) -> str:
        if not self.start_time:
            return "00:00"
        end = self.end_time or datetime.now()
        delta = end - self.start_time
        minutes, seconds = divmod(int(delta.total_seconds()), 60)
        return f"{minutes:02d}:{seconds:02d}"

    @classmethod
    def from_manifest(cls, manifest: BuildManifest, **kwargs) -> "BuildStats":
        selection = manifest.selection or {}
        return cls(
            status=manifest.status.value,
            valid=manifest.valid_count,
            invalid=manifest.invalid_count,
            load_errors=len(manifest.load_errors),
            dangling=len(manifest.dangling),
            cycles=len(manifest.cycles),
            selected=len(selection.get("included", [])),
            artifacts=len(manifest.artifacts),
            **kwargs,
        )


STATUS_COLORS = {
    BuildStatus.COMPLETED.value: "green",
    BuildStatus.COMPLETED_WITH_ISSUES.value: "yellow",
    BuildStatus.PARTIAL.value: "dark_orange",
    BuildStatus.FAILED.value: "red",
}


class StatsPanel(Static):
    """Build statistics display."""

    def compose(self) -> ComposeResult:
        yield Static(id="stats-content")

    def on_mount(self) -> None:
        self.update_display(BuildStats())

    def update_display(self, stats: BuildStats) -> None:
        content = self.query_one("#stats-content", Static)
        color = STATUS_COLORS.get(stats.status, "dim")
        status = stats.status.upper() if stats.status else stats.state.value.upper()

        content.update(f"""[b]STATUS[/b]  [{color}]{status}[/]

[b]TIME[/b]    {stats.elapsed}

[b]CHUNKS[/b]
  Valid       [green]{stats.valid:,}[/]
  Invalid     [red]{stats.invalid:,}[/]
  Load errors [red]{stats.load_errors:,}[/]

[b]REFERENCES[/b]
  Dangling    [yellow]{stats.dangling:,}[/]
  Cycles      [cyan]{stats.cycles:,}[/]

[b]OUTPUT[/b]
  Selected    [magenta]{stats.selected:,}[/]
  Artifacts   [cyan]{stats.artifacts:,}[/]""")


class StageDisplay(Static):
    """One-line pipeline stage indicator."""

    def compose(self) -> ComposeResult:
        yield Static("[dim]Idle[/]", id="stage-content")

    def update_stage(self, state: BuildState) -> None:
        content = self.query_one("#stage-content", Static)
        if state is BuildState.FAILED:
            content.update("[bold red]FAILED[/]")
            return
        if state in STAGES:
            current = STAGES.index(state)
        elif state is BuildState.DONE:
            current = len(STAGES)
        else:
            current = -1
        parts = []
        for position, stage in enumerate(STAGES):
            if position < current:
                parts.append(f"[green]{stage.value}[/]")
            elif position == current:
                parts.append(f"[bold cyan]>{stage.value}[/]")
            else:
                parts.append(f"[dim]{stage.value}[/]")
        content.update(" ".join(parts))


class IssueTable(DataTable):
    """Issues reported by the last build."""

    def on_mount(self) -> None:
        self.add_columns("Kind", "Detail")
        self.cursor_type = "row"

    def show_issues(self, issues: list[str]) -> None:
        self.clear()
        for issue in issues:
            kind, _, detail = issue.partition(": ")
            if len(detail) > 90:
                detail = detail[:87] + "..."
            self.add_row(f"[yellow]{kind}[/]", detail)


class BuildDeck(App):
    """The knowpack Build Deck."""

    # Messages for thread-safe communication
    class StateChanged(Message):
        def __init__(self, state: BuildState) -> None:
            self.state = state
            super().__init__()

    class LogMessage(Message):
        def __init__(self, message: str) -> None:
            self.message = message
            super().__init__()

    class BuildFinished(Message):
        def __init__(self, manifest: BuildManifest, stats: BuildStats) -> None:
            self.manifest = manifest
            self.stats = stats
            super().__init__()

    CSS = """
    #main-container {
        layout: horizontal;
        height: 100%;
    }

    #left-panel {
        width: 35;
        background: $surface-darken-1;
        border-right: solid $primary-darken-2;
        padding: 1;
    }

    #center-panel {
        width: 1fr;
        padding: 1;
    }

    #right-panel {
        width: 30;
        background: $surface-darken-1;
        border-left: solid $primary-darken-2;
        padding: 1;
    }

    StatsPanel {
        height: auto;
        padding: 1;
        border: round $primary;
        margin-bottom: 1;
    }

    StageDisplay {
        height: 3;
        margin-bottom: 1;
    }

    #action-buttons {
        layout: horizontal;
        height: 3;
        margin-bottom: 1;
    }

    #action-buttons Button {
        margin-right: 1;
    }

    IssueTable {
        height: 1fr;
        border: round $primary-darken-1;
    }

    #log-panel {
        height: 12;
        border: round $primary-darken-2;
    }

    .section-title {
        text-style: bold;
        margin-bottom: 1;
    }

    DirectoryTree {
        height: 100%;
        border: round $primary-darken-1;
    }
    """

    BINDINGS = [
        Binding("b", "build", "Build", show=True),
        Binding("c", "clear", "Clear", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    TITLE = "knowpack Build Deck"
    SUB_TITLE = "Chunk Build Console"

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="main-container"):
            # Left panel - Stats & Controls
            with Vertical(id="left-panel"):
                yield Label("BUILD", classes="section-title")
                yield StatsPanel()
                yield Rule()
                yield Label("Content root")
                yield Input(placeholder="Folder or .zip path...", id="source-input")
                yield Label("Output directory")
                yield Input(value="build", id="output-input")
                with Horizontal(id="action-buttons"):
                    yield Button("BUILD", id="build-btn", variant="success")
                    yield Button("Clear", id="clear-btn", variant="warning")

            # Center panel - Stage, issues, log
            with Vertical(id="center-panel"):
                yield StageDisplay()
                yield Label("ISSUES", classes="section-title")
                yield IssueTable(id="issue-table")
                yield Rule()
                yield Label("LOG", classes="section-title")
                yield Log(id="log-panel", highlight=True, auto_scroll=True)

            # Right panel - Directory browser
            with Vertical(id="right-panel"):
                yield Label("FILES", classes="section-title")
                yield DirectoryTree(Path.cwd(), id="dir-tree")

        yield Footer()

    def on_mount(self) -> None:
        self._log("Build Deck ready")
        self._log("Enter a content root and press BUILD")

    def _log(self, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.query_one("#log-panel", Log).write_line(f"[{timestamp}] {message}")

    # Message handlers for thread-safe updates
    def on_build_deck_state_changed(self, event: StateChanged) -> None:
        self.query_one(StageDisplay).update_stage(event.state)
        self._log(f"Stage: {event.state.value}")

    def on_build_deck_log_message(self, event: LogMessage) -> None:
        self._log(event.message)

    def on_build_deck_build_finished(self, event: BuildFinished) -> None:
        self.query_one(StatsPanel).update_display(event.stats)
        self.query_one("#issue-table", IssueTable).show_issues(event.manifest.issues)
        self._log(
            f"Build {event.manifest.status.value}: {event.stats.valid} valid, "
            f"{event.stats.invalid} invalid, {event.stats.artifacts} artifacts"
        )

    def on_directory_tree_directory_selected(
        self, event: DirectoryTree.DirectorySelected
    ) -> None:
        self.query_one("#source-input", Input).value = str(event.path)

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        self.query_one("#source-input", Input).value = str(event.path)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "build-btn":
            self.action_build()
        elif event.button.id == "clear-btn":
            self.action_clear()

    def action_clear(self) -> None:
        self.query_one(StatsPanel).update_display(BuildStats())
        self.query_one(StageDisplay).update_stage(BuildState.IDLE)
        self.query_one("#issue-table", IssueTable).clear()
        self.query_one("#log-panel", Log).clear()
        self._log("Cleared - ready for a new build")

    def action_build(self) -> None:
        source = self.query_one("#source-input", Input).value.strip()
        output = self.query_one("#output-input", Input).value.strip()
        if not source or not output:
            self._log("[red]ERROR: content root and output directory are required[/]")
            return
        self.run_build(source, output)

    @work(exclusive=True, thread=True)
    def run_build(self, source: str, output: str) -> None:
        """Run one build in a background thread."""
        try:
            config = load_config()
        except ConfigError as exc:
            self.post_message(self.LogMessage(f"[red]ERROR: {exc}[/]"))
            return

        start = datetime.now()
        self.post_message(self.LogMessage(f"Building {source} -> {output}"))
        orchestrator = BuildOrchestrator(
            source,
            output,
            config,
            on_state_change=lambda state: self.post_message(self.StateChanged(state)),
        )
        result = orchestrator.run()

        stats = BuildStats.from_manifest(
            result.manifest, state=result.state, start_time=start, end_time=datetime.now()
        )
        if result.manifest.error:
            self.post_message(self.LogMessage(f"[red]ERROR: {result.manifest.error}[/]"))
        self.post_message(self.BuildFinished(result.manifest, stats))


def main() -> None:
    """Run the Build Deck TUI."""
    app = BuildDeck()
    app.run()


if __name__ == "__main__":
    main()
