# ui.py
from typing import Optional

from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Button, DataTable, Input, Label, Markdown, RichLog, Static

from models import AppState, Filter, TrackRecord

class SearchControls(Static):
    """Widget for the search input and button."""
    class SearchRequested(Message):
        def __init__(self, query: str) -> None:
            self.query = query
            super().__init__()

    def __init__(self, query: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.initial_query = query

    def compose(self) -> ComposeResult:
        yield Label("Search artist or song:")
        yield Input(value=self.initial_query,
                    placeholder="e.g. Drake, Oasis, Fred again...", id="search-input")
        yield Button("Search", variant="primary", id="search-button")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_search_message()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.post_search_message()

    def post_search_message(self) -> None:
        query = self.query_one(Input).value
        if query.strip():
            self.post_message(self.SearchRequested(query))

    def set_loading(self, loading: bool) -> None:
        button = self.query_one("#search-button", Button)
        button.disabled = loading
        button.label = "Searching..." if loading else "Search"


class FilterBar(Static):
    """Segmented All / Favourites switch."""
    class FilterRequested(Message):
        def __init__(self, mode: Filter) -> None:
            self.mode = mode
            super().__init__()

    def compose(self) -> ComposeResult:
        yield Button("All", id="filter-all", variant="primary")
        yield Button("Favourites (0)", id="filter-favs")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        mode = Filter.FAVOURITES if event.button.id == "filter-favs" else Filter.ALL
        self.post_message(self.FilterRequested(mode))

    def update_filter(self, mode: Filter, favourite_count: int) -> None:
        all_button = self.query_one("#filter-all", Button)
        favs_button = self.query_one("#filter-favs", Button)
        all_button.variant = "primary" if mode is Filter.ALL else "default"
        favs_button.variant = "primary" if mode is Filter.FAVOURITES else "default"
        favs_button.label = f"Favourites ({favourite_count})"


class DetailsPane(Static):
    """Widget to display details of the selected track."""
    def on_mount(self) -> None:
        self.update_details(None, False)

    def update_details(self, track: Optional[TrackRecord], is_favourite: bool) -> None:
        if track:
            preview = f"`{track.preview_url}`" if track.has_preview else "*No preview available*"
            content = (
                f"## {track.track_name or 'Unknown track'}\n\n"
                f"- **Artist**: {track.artist_name or 'N/A'}\n"
                f"- **Album**: {track.collection_name or 'N/A'}\n"
                f"- **Favourite**: {'Yes' if is_favourite else 'No'}\n"
                f"- **Artwork**: `{track.artwork_url100 or 'N/A'}`\n"
                f"- **Preview**: {preview}"
            )
        else:
            content = "## Details\n\n*Select a track to see its details.*"
        self.query_one(Markdown).update(content)

    def compose(self) -> ComposeResult:
        yield Markdown()


class ResultsDisplay(DataTable):
    """Widget for the main results table."""
    class RowSelected(Message):
        def __init__(self, track_id: int) -> None:
            self.track_id = track_id
            super().__init__()

    class RowHighlighted(Message):
        def __init__(self, track_id: Optional[int]) -> None:
            self.track_id = track_id
            super().__init__()

    def on_mount(self) -> None:
        self.add_columns("★", "Title", "Artist", "Album", "Preview")
        self.cursor_type = "row"

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        if event.row_key.value is not None:
            self.post_message(self.RowSelected(int(event.row_key.value)))

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        event.stop()
        key = event.row_key.value
        self.post_message(self.RowHighlighted(int(key) if key is not None else None))

    def update_results(self, state: AppState) -> None:
        cursor_row = self.cursor_row
        self.clear()
        for track in state.visible:
            if not track.has_preview:
                preview = "-"
            elif track.preview_url == state.playing_url:
                preview = "⏸"
            else:
                preview = "▶"
            self.add_row(
                "★" if state.is_favourite(track.track_id) else "☆",
                track.track_name or "",
                track.artist_name or "",
                track.collection_name or "",
                preview,
                key=str(track.track_id),
            )
        if state.visible:
            self.move_cursor(row=min(cursor_row, len(state.visible) - 1))


class StatusLine(Label):
    """Shows the current search status."""
    def update_status(self, state: AppState) -> None:
        self.update(state.status.message)


class LogPane(RichLog):
    """A dedicated widget for logging application events."""
    def add_message(self, message: str) -> None:
        self.write(message)
