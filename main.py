# main.py
import asyncio
import logging
import shutil
import traceback
try:
    import pyperclip
except ImportError:
    pyperclip = None

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.logging import TextualHandler
from textual.reactive import reactive
from textual.widgets import Footer, Header, Input

from config import Config
from models import AppState, Failure, Filter, Success
from services import (EndedCallback, FavouritesStore, KeyValueStore, MpvAudio,
                      MusicSearchService, PlaybackController, PlaybackError)
from state import AppModel
from ui import DetailsPane, FilterBar, LogPane, ResultsDisplay, SearchControls, StatusLine

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Routes stdlib logging to the Textual devtools console."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(TextualHandler())
    for lib in ("urllib3", "requests"):
        logging.getLogger(lib).setLevel(logging.WARNING)


class MusicFinderApp(App):
    BINDINGS = [
        ("d", "toggle_dark", "Toggle dark mode"),
        ("q", "quit", "Quit"),
        ("p", "toggle_preview", "Play/Pause"),
        ("s", "stop_preview", "Stop"),
        ("f", "toggle_favourite", "Favourite"),
        ("a", "show_all", "All"),
        ("v", "show_favourites", "Favourites"),
        ("c", "copy_link", "Copy Link"),
    ]
    DEFAULT_CSS = """
    #app-grid { height: 1fr; }
    #left-pane { width: 2fr; }
    #right-pane { width: 1fr; }
    SearchControls { height: auto; layout: horizontal; }
    SearchControls Input { width: 1fr; }
    FilterBar { height: auto; layout: horizontal; }
    StatusLine { padding: 0 1; }
    #log { height: 8; }
    """

    app_state = reactive(AppState(), always_update=True)

    def __init__(self, search_service: MusicSearchService, favourites_store: FavouritesStore, config: Config):
        super().__init__()
        self.search_service = search_service
        self.config = config
        self.playback = PlaybackController(self.make_audio)
        self.model = AppModel(search_service, favourites_store, self.playback,
                              query=config.DEFAULT_QUERY)

    def make_audio(self, url: str, on_ended: EndedCallback) -> MpvAudio:
        """Builds the audio resource; its end-of-clip callback runs on the UI thread."""
        def ended(ended_url: str) -> None:
            self.call_from_thread(self.finish_preview, on_ended, ended_url)
        return MpvAudio(url, ended, self.config.PLAYER_COMMAND)

    def finish_preview(self, on_ended: EndedCallback, url: str) -> None:
        on_ended(url)
        self.refresh_state()

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="main-container"):
            with Horizontal(id="app-grid"):
                with Vertical(id="left-pane"):
                    yield SearchControls(query=self.config.DEFAULT_QUERY)
                    yield FilterBar()
                    yield StatusLine(id="status")
                    yield ResultsDisplay(id="results-table")
                with Vertical(id="right-pane"):
                    yield DetailsPane(id="details-pane")
            yield LogPane(id="log", wrap=True, highlight=True, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        log = self.query_one(LogPane)
        self.query_one(Input).focus()
        if shutil.which(self.config.PLAYER_COMMAND):
            log.add_message(f"[green]✅ {self.config.PLAYER_COMMAND} found.[/green]")
        else:
            log.add_message(f"[yellow]⚠️ '{self.config.PLAYER_COMMAND}' not found, previews disabled.[/yellow]")
        if pyperclip:
            log.add_message("[green]✅ Clipboard found.[/green]")
        else:
            log.add_message("[yellow]⚠️ 'pyperclip' not installed.[/yellow]")
        log.add_message(f"⭐ Loaded {len(self.model.favourites)} favourites.")
        self.refresh_state()
        self.start_search(self.config.DEFAULT_QUERY)

    def on_unmount(self) -> None:
        self.playback.close()

    def refresh_state(self) -> None:
        self.app_state = self.model.snapshot()

    def watch_app_state(self, old_state: AppState, new_state: AppState) -> None:
        """Pushes state changes to child widgets."""
        results_changed = old_state.results != new_state.results
        self.query_one(SearchControls).set_loading(new_state.loading)
        self.query_one(FilterBar).update_filter(new_state.filter, len(new_state.favourites))
        self.query_one(StatusLine).update_status(new_state)
        if (results_changed or old_state.visible != new_state.visible
                or old_state.favourites != new_state.favourites
                or old_state.playing_url != new_state.playing_url):
            table = self.query_one(ResultsDisplay)
            table.update_results(new_state)
            if results_changed and new_state.visible:
                table.focus()
        selected = new_state.selected
        self.query_one(DetailsPane).update_details(
            selected, bool(selected) and new_state.is_favourite(selected.track_id))

    def highlighted_track(self):
        return self.app_state.selected

    # --- Actions ---
    def action_toggle_preview(self) -> None:
        log = self.query_one(LogPane)
        track = self.highlighted_track()
        if not track:
            log.add_message("[yellow]⚠️ No track selected.[/yellow]")
            return
        if not track.has_preview:
            log.add_message(f"[yellow]⚠️ No preview available for '{track.track_name}'.[/yellow]")
            return
        try:
            self.model.toggle_preview(track)
        except PlaybackError as e:
            log.add_message(f"[red]❌ {e}[/red]")
        else:
            if self.model.playing_url == track.preview_url:
                log.add_message(f"🎧 Playing preview of '[b]{track.track_name}[/b]'.")
            else:
                log.add_message(f"⏸ Paused '[b]{track.track_name}[/b]'.")
        self.refresh_state()

    def action_stop_preview(self) -> None:
        self.model.stop_preview()
        self.refresh_state()

    def action_toggle_favourite(self) -> None:
        log = self.query_one(LogPane)
        track = self.highlighted_track()
        if not track:
            log.add_message("[yellow]⚠️ No track selected.[/yellow]")
            return
        if self.model.toggle_favourite(track):
            log.add_message(f"★ Added '[b]{track.track_name}[/b]' to favourites.")
        else:
            log.add_message(f"☆ Removed '[b]{track.track_name}[/b]' from favourites.")
        self.refresh_state()

    def action_show_all(self) -> None:
        self.model.set_filter(Filter.ALL)
        self.refresh_state()

    def action_show_favourites(self) -> None:
        self.model.set_filter(Filter.FAVOURITES)
        self.refresh_state()

    def action_copy_link(self) -> None:
        log = self.query_one(LogPane)
        if not pyperclip:
            log.add_message("[red]❌ 'pyperclip' not installed.[/red]")
            return
        track = self.highlighted_track()
        if not track:
            log.add_message("[yellow]⚠️ No track selected.[/yellow]")
            return
        link = track.raw.get("trackViewUrl") or track.preview_url
        if not link:
            log.add_message(f"[yellow]⚠️ No link for '{track.track_name}'.[/yellow]")
            return
        pyperclip.copy(link)
        log.add_message(f"📋 Copied link for '[b]{track.track_name}[/b]'.")

    # --- Message Handlers ---
    def on_input_changed(self, event: Input.Changed) -> None:
        self.model.set_query(event.value)

    def on_search_controls_search_requested(self, message: SearchControls.SearchRequested) -> None:
        self.model.set_query(message.query)
        self.start_search(message.query)

    def on_filter_bar_filter_requested(self, message: FilterBar.FilterRequested) -> None:
        self.model.set_filter(message.mode)
        self.refresh_state()

    def on_results_display_row_selected(self, message: ResultsDisplay.RowSelected) -> None:
        self.model.select(message.track_id)
        self.action_toggle_preview()

    def on_results_display_row_highlighted(self, message: ResultsDisplay.RowHighlighted) -> None:
        self.model.select(message.track_id)
        self.refresh_state()

    # --- Worker Methods ---
    def start_search(self, query: str) -> None:
        term = self.model.begin_search(query)
        if term is None:
            return
        self.query_one(LogPane).add_message(f"🔎 Searching for '{term}'...")
        self.refresh_state()
        # Not exclusive: overlapping searches race and the last to finish wins.
        self.run_worker(self.perform_search(term), group="search_worker")

    async def perform_search(self, term: str) -> None:
        try:
            outcome = await asyncio.to_thread(self.search_service.search, term)
        except Exception:
            logger.exception("Search worker failed for %r", term)
            outcome = Failure(traceback.format_exc())
        self.model.finish_search(term, outcome)
        self.refresh_state()
        log = self.query_one(LogPane)
        if isinstance(outcome, Failure):
            log.add_message("[red]❌ An error occurred during search.[/red]")
            log.add_message(f"[dim]{escape(outcome.details)}[/dim]")
        elif isinstance(outcome, Success):
            log.add_message(f"🎶 Found {len(outcome.tracks)} results for '{term}'.")
        else:
            log.add_message(f"🤷 No music found for '{term}'.")


def main() -> None:
    app_config = Config()
    setup_logging(app_config.LOG_LEVEL)
    kv_store = KeyValueStore(app_config.DATABASE_FILENAME)
    favourites_store = FavouritesStore(kv_store, app_config.FAVOURITES_KEY)
    search_service = MusicSearchService(
        app_config.SEARCH_URL,
        entity=app_config.SEARCH_ENTITY,
        limit=app_config.SEARCH_RESULT_LIMIT,
        timeout=app_config.HTTP_TIMEOUT_SECONDS,
        user_agent=app_config.USER_AGENT,
    )

    logger.info("Starting music finder with database %s", app_config.DATABASE_FILENAME)
    app = MusicFinderApp(search_service, favourites_store, app_config)

    try:
        app.run()
    finally:
        kv_store.close()


if __name__ == "__main__":
    main()
