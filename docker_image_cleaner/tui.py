from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import Button, DataTable, Footer, Header, Label, Static, Switch

from .config import format_duration
from .models import Disposition

DISPOSITION_LABELS = {
    Disposition.KEEP: "[green]🟢 Keep[/green]",
    Disposition.DELETE_DANGLING: "[yellow]🔸 Dangling[/yellow]",
    Disposition.DELETE_LEAF: "[red]🔴 Leaf[/red]",
}


def format_size(bytes_size):
    """Format bytes to human readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.1f} PB"


def format_age(image, now):
    """Format the age of an image relative to the classification time."""
    if image.created is None:
        return "unknown"
    return format_duration(now - image.created)


class ReviewApp(App):
    """Review a classification and run the deletion from one screen."""

    TITLE = "🐳 Docker Image Cleaner"
    SUB_TITLE = "Review before you delete"

    CSS = """
    #summary { padding: 0 1; }
    .button_row { height: auto; padding: 0 1; }
    .button_row Label { padding: 1 1 0 2; }
    #delete_status { padding: 0 1; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", priority=True),
        Binding("p", "preview", "Dry Run Preview"),
        Binding("x", "delete", "Delete Eligible"),
    ]

    def __init__(self, classification, executor, delete_dangling=False, delete_leaf=False):
        super().__init__()
        self.classification = classification
        self.executor = executor
        self.delete_dangling = delete_dangling
        self.delete_leaf = delete_leaf
        self.last_report = None
        self.deleted = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Static(id="summary"),
            DataTable(id="image_table", cursor_type="row", zebra_stripes=True),
            Horizontal(
                Label("Delete dangling:"),
                Switch(value=self.delete_dangling, id="dangling_switch"),
                Label("Delete leaf:"),
                Switch(value=self.delete_leaf, id="leaf_switch"),
                classes="button_row",
            ),
            Horizontal(
                Button("👁️ Dry Run Preview", id="preview_button", variant="default"),
                Button("🗑️ Delete Eligible", id="delete_button", variant="error"),
                classes="button_row",
            ),
            Static(id="delete_status"),
        )
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#image_table", DataTable)
        table.add_columns("🆔 Image ID", "🏷️ Tags", "📅 Age", "💾 Size", "📊 Disposition", "💬 Reason")
        now = self.classification.now
        for decision in self.classification:
            image = decision.image
            tags = ", ".join(image.tags) if image.tags else "<dangling>"
            if len(tags) > 40:
                tags = tags[:37] + "..."
            table.add_row(
                image.short_id,
                tags,
                format_age(image, now),
                format_size(image.size),
                DISPOSITION_LABELS[decision.disposition],
                decision.reason,
                key=image.id,
            )
        self.query_one("#summary", Static).update(self.summary_text())

    def summary_text(self) -> str:
        return (
            f"📦 {len(self.classification)} images: "
            f"{len(self.classification.kept)} kept, "
            f"{len(self.classification.dangling)} dangling, "
            f"{len(self.classification.leaves)} leaf"
        )

    @on(Switch.Changed)
    def handle_switch(self, event: Switch.Changed):
        if event.switch.id == "dangling_switch":
            self.delete_dangling = event.value
        elif event.switch.id == "leaf_switch":
            self.delete_leaf = event.value

    @on(Button.Pressed)
    def handle_button_press(self, event: Button.Pressed):
        if event.button.id == "preview_button":
            self.action_preview()
        elif event.button.id == "delete_button":
            self.action_delete()

    def action_preview(self) -> None:
        report = self.executor.execute(self.classification)
        self.last_report = report
        self.query_one("#delete_status", Static).update(
            f"[bold green]✅ Would delete {len(report.would_delete)} images. Check logs for details.[/bold green]"
        )

    def action_delete(self) -> None:
        status = self.query_one("#delete_status", Static)
        if self.deleted:
            status.update("[bold yellow]⚠️ Images were already removed. Quit and rescan to review again.[/bold yellow]")
            return
        if not (self.delete_dangling or self.delete_leaf):
            status.update("[bold yellow]⚠️ Enable dangling or leaf deletion first.[/bold yellow]")
            return
        report = self.executor.execute(
            self.classification,
            delete_dangling=self.delete_dangling,
            delete_leaf=self.delete_leaf,
        )
        self.last_report = report
        self.deleted = True
        self.query_one("#delete_button", Button).disabled = True
        if report.failures:
            failed = len(report.acted_on) - len(report.removed)
            status.update(
                f"[bold red]❌ Removed {len(report.removed)} images, {failed} could not be removed "
                f"({len(report.failures)} failure(s)). Check logs for details.[/bold red]"
            )
        else:
            status.update(f"[bold green]✅ Removed {len(report.removed)} images.[/bold green]")
