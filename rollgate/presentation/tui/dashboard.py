"""
Dashboard TUI

Architectural Intent:
- Textual-based dashboard listing finished rollouts from history
- Status cells are colored by outcome; causes are shown verbatim
- Configurable refresh interval (+/- keys) and pagination (n/p keys)
"""

from textual.app import App, ComposeResult
from textual.widgets import Header, Footer, DataTable, Log
from textual.containers import Vertical
from typing import Any, Optional
import logging
from datetime import datetime

from rollgate.domain.ports.rollout_history_port import RolloutHistoryPort

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    "SUCCEEDED": "green",
    "ROLLED_BACK": "yellow",
    "FAILED": "red",
}

COLUMNS = ("Finished", "Host", "Reference", "Status", "Rolled Back To", "Causes")


def format_row(record: dict[str, Any]) -> tuple[str, ...]:
    """Render one history record as dashboard cells."""
    status = record.get("status", "")
    style = STATUS_STYLES.get(status)
    status_cell = f"[{style}]{status}[/{style}]" if style else status
    causes = "; ".join(
        f"{c.get('stage', '?')}: {c.get('cause', '')}" for c in record.get("causes") or []
    )
    finished = record.get("finished_at") or ""
    return (
        finished[:19].replace("T", " "),
        record.get("host", ""),
        record.get("reference", ""),
        status_cell,
        record.get("rollback_reference") or "-",
        causes or "-",
    )


class RolloutDashboard(App):
    """A Textual app showing rollgate rollout history."""

    CSS = """
    Screen {
        layout: vertical;
    }
    DataTable {
        height: 3fr;
        border: solid green;
    }
    Log {
        height: 1fr;
        border: solid yellow;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("+", "increase_interval", "Slower"),
        ("-", "decrease_interval", "Faster"),
        ("n", "next_page", "Next Page"),
        ("p", "prev_page", "Prev Page"),
    ]

    def __init__(
        self,
        history: RolloutHistoryPort,
        host: Optional[str] = None,
        refresh_interval: float = 5.0,
        page_size: int = 20,
    ):
        super().__init__()
        self.history = history
        self.host = host
        self._refresh_interval = refresh_interval
        self._page = 0
        self._page_size = page_size
        self._rows: list[dict[str, Any]] = []
        self._timer = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(DataTable(id="rollout_table"), Log(id="activity_log"))
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.add_columns(*COLUMNS)
        scope = self.host or "all hosts"
        self.log_message(f"rollgate dashboard for {scope}")
        self.refresh_rows()
        self._timer = self.set_interval(self._refresh_interval, self.refresh_rows)

    def log_message(self, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.query_one(Log).write_line(f"[{timestamp}] {message}")

    def page_rows(self) -> list[dict[str, Any]]:
        start = self._page * self._page_size
        return self._rows[start:start + self._page_size]

    def refresh_rows(self) -> None:
        try:
            self._rows = self.history.get_rollout_history(self.host, limit=500)
        except Exception as e:
            logger.exception("history read failed")
            self.log_message(f"Error reading history: {e}")
            return
        table = self.query_one(DataTable)
        table.clear()
        for record in self.page_rows():
            table.add_row(*format_row(record))

    def action_refresh(self) -> None:
        self.refresh_rows()
        self.log_message(f"Refreshed: {len(self._rows)} rollout(s)")

    def action_increase_interval(self) -> None:
        self._refresh_interval = min(60.0, self._refresh_interval + 1.0)
        self._restart_timer()
        self.log_message(f"Refresh interval: {self._refresh_interval}s")

    def action_decrease_interval(self) -> None:
        self._refresh_interval = max(1.0, self._refresh_interval - 1.0)
        self._restart_timer()
        self.log_message(f"Refresh interval: {self._refresh_interval}s")

    def action_next_page(self) -> None:
        max_page = max(0, len(self._rows) - 1) // self._page_size
        if self._page < max_page:
            self._page += 1
            self.refresh_rows()
            self.log_message(f"Page {self._page + 1}")

    def action_prev_page(self) -> None:
        if self._page > 0:
            self._page -= 1
            self.refresh_rows()
            self.log_message(f"Page {self._page + 1}")

    def _restart_timer(self) -> None:
        if self._timer:
            self._timer.stop()
        self._timer = self.set_interval(self._refresh_interval, self.refresh_rows)
