import argparse
import asyncio
import logging
from typing import Optional

import requests
from dotenv import load_dotenv
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.logging import TextualHandler
from textual.reactive import reactive
from textual.widgets import Footer, Header, Input

from config import Config
from models import AppState, SearchOutcome, TitleEntity
from presentation import export_json, export_markdown
from services import (AnalyticsCounter, Clipboard, MetadataService, SearchHistoryStore,
                      StorageService, ThemeStore, UrlState)
from ui import (AnalyticsPanel, ArtworkGallery, ComparisonView, DetailsPane, LightboxScreen,
                LogPane, RateLimitIndicator, SearchControls)

THEMES = {"dark": "textual-dark", "light": "textual-light"}

class MetadataExplorerApp(App):
    TITLE = "Metadata Explorer"
    BINDINGS = [
        Binding("ctrl+k", "focus_search", "Search", priority=True),
        ("escape", "dismiss_overlays", "Close"),
        ("ctrl+t", "toggle_theme", "Theme"),
        ("ctrl+y", "copy_id", "Copy ID"),
        ("ctrl+o", "export_markdown", "Export MD"),
        ("ctrl+g", "export_json", "Export JSON"),
        ("ctrl+s", "copy_share_link", "Share"),
        ("ctrl+b", "toggle_batch", "Batch"),
        ("f2", "toggle_analytics", "Analytics"),
        ("f3", "clear_history", "Clear History"),
        ("f4", "back", "Back"),
    ]
    CSS = """
    #main-container { height: 1fr; }
    #search-row { height: auto; }
    #search-input { width: 1fr; }
    #history-suggestions { max-height: 8; }
    #app-grid { height: 1fr; }
    #left-pane { width: 3fr; }
    #right-pane { width: 1fr; min-width: 28; }
    #rate-limit { height: auto; padding: 0 1; }
    #rate-limit.low { color: $error; }
    #countdown { height: auto; padding: 0 1; color: $warning; }
    #artwork { height: auto; }
    #comparison { height: auto; }
    #log { height: 8; border-top: solid $primary; }
    LightboxScreen { align: center middle; }
    #lightbox { width: 80%; height: auto; padding: 1 2; border: thick $primary; background: $surface; }
    """

    app_state = reactive(AppState(), always_update=True, init=False)

    def __init__(self, metadata_service: MetadataService, history: SearchHistoryStore,
                 analytics: AnalyticsCounter, theme_store: ThemeStore, url_state: UrlState,
                 clipboard: Clipboard, config: Config):
        super().__init__()
        self.metadata_service = metadata_service
        self.history = history
        self.analytics = analytics
        self.theme_store = theme_store
        self.url_state = url_state
        self.clipboard_service = clipboard
        self.config = config

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="main-container"):
            yield SearchControls(self.history.filter, initial_value=self.url_state.read(), id="search-controls")
            with Horizontal(id="app-grid"):
                with Vertical(id="left-pane"):
                    yield DetailsPane(id="details-pane")
                    yield ComparisonView(id="comparison")
                with Vertical(id="right-pane"):
                    yield RateLimitIndicator(id="rate-limit")
                    yield AnalyticsPanel(id="analytics")
            yield LogPane(id="log", wrap=True, highlight=True, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        log = self.query_one(LogPane)
        self.theme = THEMES[self.theme_store.load()]
        self.query_one(ComparisonView).display = False
        self.query_one(AnalyticsPanel).display = False
        self.query_one(AnalyticsPanel).update_snapshot(self.analytics.snapshot)
        self.query_one("#search-input", Input).focus()
        self.sub_title = self.url_state.location
        log.add_message(f"[green]✅ Using metadata endpoint {self.metadata_service.endpoint}[/green]")
        log.add_message(f"📚 {len(self.history.entries)} searches in history.")

        initial = self.url_state.read()
        if initial:
            self.start_search(initial)

    def watch_app_state(self, old_state: AppState, new_state: AppState) -> None:
        self.query_one(DetailsPane).update_details(new_state)
        self.query_one(ComparisonView).update_entities(new_state.comparison)

    # --- searching ---
    def on_search_controls_search_requested(self, message: SearchControls.SearchRequested) -> None:
        if message.is_batch:
            self.start_batch(message.identifiers)
        else:
            self.start_search(message.identifiers[0])

    def start_search(self, identifier: str) -> None:
        self.query_one(LogPane).add_message(f"🔎 Searching for '{identifier}'...")
        self.url_state.write(identifier)
        self.sub_title = self.url_state.location
        token = self.metadata_service.begin()
        self.app_state = AppState(is_loading=True)
        self.run_worker(self.perform_search(identifier, token), group="search_worker", exclusive=True)

    def start_batch(self, identifiers: list) -> None:
        ids = identifiers[:self.config.MAX_BATCH]
        self.query_one(LogPane).add_message(f"🔎 Comparing {', '.join(ids)}...")
        token = self.metadata_service.begin()
        self.app_state = AppState(is_loading=True)
        self.run_worker(self.perform_batch(ids, token), group="search_worker", exclusive=True)

    async def perform_search(self, identifier: str, token: int) -> None:
        outcome = await asyncio.to_thread(self.metadata_service.fetch_one, identifier, token)
        self.finish_search(outcome)

    async def perform_batch(self, identifiers: list, token: int) -> None:
        outcome = await asyncio.to_thread(self.metadata_service.fetch_batch, identifiers, token)
        self.finish_search(outcome)

    def finish_search(self, outcome: SearchOutcome) -> None:
        log = self.query_one(LogPane)
        self.query_one(RateLimitIndicator).update_rate_limit(self.metadata_service.rate_limit)
        if not self.metadata_service.apply(outcome):
            log.add_message(f"[dim]Ignored a late response for {', '.join(outcome.identifiers)}.[/dim]")
            return

        if not outcome.ok:
            self.app_state = AppState(error=outcome.error)
            log.add_message(f"[red]❌ {outcome.error}[/red]")
            self.notify(outcome.error, severity="error")
            return

        self.query_one(AnalyticsPanel).update_snapshot(self.analytics.snapshot)
        if outcome.is_batch:
            self.app_state = AppState(comparison=outcome.entities)
            message = f"Comparing {len(outcome.entities)} titles"
        else:
            self.app_state = AppState(entity=outcome.entities[0])
            message = f"Found: {outcome.entities[0].title}"
        log.add_message(f"🎬 {message} ({outcome.elapsed_ms}ms)")
        self.notify(message)

    def on_artwork_gallery_image_selected(self, message: ArtworkGallery.ImageSelected) -> None:
        self.push_screen(LightboxScreen(message.item, self.clipboard_service.copy))

    # --- actions ---
    def _current_entity(self) -> Optional[TitleEntity]:
        entity = self.app_state.entity
        if entity is None:
            self.query_one(LogPane).add_message("[yellow]⚠️ No title selected.[/yellow]")
        return entity

    def _copy(self, text: str, success: str, failure: str = "Failed to copy") -> bool:
        if self.clipboard_service.copy(text):
            self.query_one(LogPane).add_message(f"📋 {success}.")
            self.notify(success)
            return True
        self.query_one(LogPane).add_message(f"[red]❌ {failure}.[/red]")
        self.notify(failure, severity="error")
        return False

    def action_focus_search(self) -> None:
        self.query_one("#search-input", Input).focus()

    def action_dismiss_overlays(self) -> None:
        self.query_one(AnalyticsPanel).display = False
        self.query_one(SearchControls).hide_suggestions()
        if isinstance(self.focused, Input):
            self.set_focus(None)

    def action_toggle_theme(self) -> None:
        theme = "light" if self.theme == THEMES["dark"] else "dark"
        self.theme = THEMES[theme]
        self.theme_store.save(theme)

    def action_copy_id(self) -> None:
        entity = self._current_entity()
        if entity:
            self._copy(entity.video_id, "ID copied to clipboard")

    def action_export_markdown(self) -> None:
        entity = self._current_entity()
        if entity:
            self._copy(export_markdown(entity), "Exported as MARKDOWN", "Failed to export")

    def action_export_json(self) -> None:
        entity = self._current_entity()
        if entity:
            self._copy(export_json(entity), "Exported as JSON", "Failed to export")

    def action_copy_share_link(self) -> None:
        entity = self._current_entity()
        if entity:
            self._copy(self.url_state.share_link(entity.video_id), "Share link copied")

    def action_toggle_batch(self) -> None:
        enabled = self.query_one(SearchControls).toggle_batch()
        self.query_one(LogPane).add_message(f"Batch mode {'on' if enabled else 'off'}.")

    def action_toggle_analytics(self) -> None:
        panel = self.query_one(AnalyticsPanel)
        panel.update_snapshot(self.analytics.snapshot)
        panel.display = not panel.display

    def action_clear_history(self) -> None:
        self.history.clear()
        self.query_one(SearchControls).hide_suggestions()
        self.query_one(LogPane).add_message("🗑️ Search history cleared.")

    def action_back(self) -> None:
        self.metadata_service.begin()
        self.workers.cancel_group(self, "search_worker")
        self.app_state = AppState()
        self.url_state.write("")
        self.sub_title = self.url_state.location
        self.query_one(SearchControls).clear()


def build_app(config: Config, target: Optional[str] = None,
              session: Optional[requests.Session] = None,
              clipboard: Optional[Clipboard] = None) -> MetadataExplorerApp:
    storage = StorageService(config.DATABASE_FILENAME)
    history = SearchHistoryStore(storage, config.MAX_HISTORY)
    analytics = AnalyticsCounter(storage, config.ANALYTICS_WINDOW, config.RECENT_SEARCHES)
    metadata_service = MetadataService(config, history, analytics, session=session)
    url_state = UrlState.from_target(target, config.SHARE_BASE_URL)
    return MetadataExplorerApp(metadata_service, history, analytics, ThemeStore(storage),
                               url_state, clipboard or Clipboard(), config)


def run() -> None:
    parser = argparse.ArgumentParser(description="Explore title metadata by Video ID.")
    parser.add_argument("target", nargs="?", help="A Video ID or a share link containing ?v=<id>")
    parser.add_argument("--api-url", help="Base URL of the metadata service")
    parser.add_argument("--db", help="Path of the local state database")
    args = parser.parse_args()

    load_dotenv()
    try:
        app_config = Config.from_env()
    except ValueError as e:
        parser.error(f"invalid METADATA_* environment setting: {e}")
    if args.api_url:
        app_config.API_BASE_URL = args.api_url
    if args.db:
        app_config.DATABASE_FILENAME = args.db

    logging.basicConfig(level=logging.INFO, handlers=[TextualHandler()])

    app = build_app(app_config, args.target)
    try:
        app.run()
    finally:
        app.theme_store.storage.close()


if __name__ == "__main__":
    run()
