# ui.py
from typing import Callable, Dict, List, Optional

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import (Button, DataTable, Input, Label, Markdown, OptionList,
                             RichLog, Static)
from textual.widgets.option_list import Option

from models import AnalyticsSnapshot, AppState, HistoryEntry, RateLimit, TitleEntity
from presentation import (artwork_items, comparison_rows, countdown, details_markdown,
                          empty_state_markdown, error_markdown, is_future)
from services import parse_query

class SearchControls(Static):
    """Widget for the search input, batch toggle, and history suggestions."""
    class SearchRequested(Message):
        def __init__(self, identifiers: List[str], is_batch: bool) -> None:
            self.identifiers = identifiers
            self.is_batch = is_batch
            super().__init__()

    def __init__(self, history_filter: Callable[[str], List[HistoryEntry]], initial_value: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.history_filter = history_filter
        self.initial_value = initial_value
        self.batch_mode = False

    def compose(self) -> ComposeResult:
        yield Label("Enter a Video ID (comma-separated for comparison):")
        with Horizontal(id="search-row"):
            yield Input(value=self.initial_value, placeholder="Enter Netflix Video ID", id="search-input")
            yield Button("Batch: off", id="batch-toggle")
            yield Button("Search", variant="primary", id="search-button")
        yield OptionList(id="history-suggestions")

    def on_mount(self) -> None:
        self.hide_suggestions()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "batch-toggle":
            self.toggle_batch()
        else:
            self.post_search_message()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.post_search_message()

    def on_input_changed(self, event: Input.Changed) -> None:
        self.show_suggestions(event.value)

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        identifier = event.option.id
        self.query_one(Input).value = identifier
        self.hide_suggestions()
        self.post_message(self.SearchRequested([identifier], False))

    def toggle_batch(self) -> bool:
        self.batch_mode = not self.batch_mode
        button = self.query_one("#batch-toggle", Button)
        button.label = f"Batch: {'on' if self.batch_mode else 'off'}"
        button.variant = "warning" if self.batch_mode else "default"
        self.query_one(Input).placeholder = (
            "Enter IDs (comma-separated)" if self.batch_mode else "Enter Netflix Video ID"
        )
        return self.batch_mode

    def post_search_message(self) -> None:
        identifiers, is_batch = parse_query(self.query_one(Input).value, self.batch_mode)
        if identifiers:
            self.hide_suggestions()
            self.post_message(self.SearchRequested(identifiers, is_batch))

    def show_suggestions(self, text: str) -> None:
        suggestions = self.query_one(OptionList)
        matches = self.history_filter(text.strip()) if text.strip() else []
        suggestions.clear_options()
        suggestions.add_options([Option(f"{e.id}  {e.title}", id=e.id) for e in matches])
        suggestions.display = bool(matches)

    def hide_suggestions(self) -> None:
        self.query_one(OptionList).display = False

    def clear(self) -> None:
        self.query_one(Input).value = ""
        self.hide_suggestions()


class RateLimitIndicator(Static):
    """Shows the last known rate-limit budget."""
    def on_mount(self) -> None:
        self.update_rate_limit(RateLimit())

    def update_rate_limit(self, rate_limit: RateLimit) -> None:
        filled = max(0, min(10, round(rate_limit.percentage / 10)))
        bar = "█" * filled + "░" * (10 - filled)
        self.update(f"{bar} {rate_limit.remaining}/{rate_limit.limit} requests")
        self.set_class(rate_limit.is_low, "low")


class AnalyticsPanel(Markdown):
    """Search statistics, toggled from the footer."""
    def update_snapshot(self, snapshot: AnalyticsSnapshot) -> None:
        lines = [
            "### Analytics",
            "",
            f"- **Total Searches**: {snapshot.total_searches}",
            f"- **Avg Response**: {round(snapshot.avg_response_time)}ms",
        ]
        if snapshot.recent_searches:
            lines += ["", "**Recent Queries**", ""]
            lines += [f"- `{s.id}` {s.time}ms" for s in snapshot.recent_searches]
        self.update("\n".join(lines))


class CountdownTimer(Static):
    """Ticks once per second until the availability time, then hides itself."""
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.target: Optional[str] = None
        self._timer = None

    def on_mount(self) -> None:
        self.display = False

    def start(self, target: Optional[str]) -> None:
        self.stop()
        self.target = target
        if self.tick():
            self._timer = self.set_interval(1, self.tick)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        self.display = False

    def tick(self) -> bool:
        left = countdown(self.target)
        if left is None:
            self.stop()
            return False
        self.display = True
        self.update(f"Available in  {left}")
        return True


class ArtworkButton(Button):
    def __init__(self, item: Dict) -> None:
        size = f"{item['width']}×{item['height']}" if item.get("width") else ""
        super().__init__(f"{item['label']} {size}".strip())
        self.item = item


class ArtworkGallery(Horizontal):
    """One button per available image; pressing one asks for the lightbox."""
    class ImageSelected(Message):
        def __init__(self, item: Dict) -> None:
            self.item = item
            super().__init__()

    def set_items(self, items: List[Dict]) -> None:
        self.remove_children()
        if items:
            self.mount(*[ArtworkButton(item) for item in items])
        self.display = bool(items)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if isinstance(event.button, ArtworkButton):
            event.stop()
            self.post_message(self.ImageSelected(event.button.item))


class DetailsPane(VerticalScroll):
    """Widget to display the selected title, or the empty/error/loading state."""
    def compose(self) -> ComposeResult:
        yield CountdownTimer(id="countdown")
        yield Markdown(id="details-markdown")
        yield ArtworkGallery(id="artwork")

    def on_mount(self) -> None:
        self.update_details(AppState())

    def update_details(self, state: AppState) -> None:
        timer = self.query_one(CountdownTimer)
        gallery = self.query_one(ArtworkGallery)
        markdown = self.query_one("#details-markdown", Markdown)
        entity: Optional[TitleEntity] = state.entity

        if entity is not None:
            markdown.update(details_markdown(entity))
            if is_future(entity.availability_start_time):
                timer.start(entity.availability_start_time)
            else:
                timer.stop()
            gallery.set_items(artwork_items(entity))
            return

        timer.stop()
        gallery.set_items([])
        if state.is_loading:
            markdown.update("## Loading...")
        elif state.error:
            markdown.update(error_markdown(state.error))
        elif state.comparison:
            markdown.update(f"## Comparison Mode\n\n*{len(state.comparison)} titles side by side. Press F4 to go back.*")
        else:
            markdown.update(empty_state_markdown())


class ComparisonView(DataTable):
    """Side-by-side table for a batch search."""
    def update_entities(self, entities: List[TitleEntity]) -> None:
        self.clear(columns=True)
        self.display = bool(entities)
        if not entities:
            return
        self.add_columns("", *[e.title for e in entities])
        for row in comparison_rows(entities):
            self.add_row(*row)


class LightboxScreen(ModalScreen):
    """Overlay for one artwork image."""
    BINDINGS = [("escape", "close", "Close"), ("c", "copy_url", "Copy URL")]

    def __init__(self, item: Dict, copy: Callable[[str], bool]) -> None:
        super().__init__()
        self.item = item
        self.copy = copy

    def compose(self) -> ComposeResult:
        with Vertical(id="lightbox"):
            yield Label(f"[b]{self.item['label']}[/b]")
            if self.item.get("width"):
                yield Label(f"{self.item['width']}×{self.item['height']}")
            yield Static(self.item["url"], id="lightbox-url")
            yield Button("Close", id="lightbox-close")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def action_close(self) -> None:
        self.dismiss()

    def action_copy_url(self) -> None:
        if self.copy(self.item["url"]):
            self.notify(f"{self.item['label']} URL copied to clipboard")
        else:
            self.notify("Failed to copy", severity="error")


class LogPane(RichLog):
    """A dedicated widget for logging application events."""
    def add_message(self, message: str) -> None:
        self.write(message)
