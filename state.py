# state.py
import logging
from typing import Dict, List, Optional, Union

from models import (AppState, Empty, Failure, FavouriteRecord, Filter, SearchOutcome,
                    Status, StatusKind, Success, TrackRecord)
from services import FavouritesStore, MusicSearchService, PlaybackController

logger = logging.getLogger(__name__)


class AppModel:
    """Owns the query, results, favourites, filter and playback of the app.

    All methods are expected to run on one thread. A search is split into
    begin_search and finish_search so the network call can run elsewhere
    in between; overlapping searches are not cancelled, and whichever
    finishes last decides the results and status.
    """

    def __init__(self, search_service: MusicSearchService, favourites_store: FavouritesStore,
                 playback: PlaybackController, query: str = ""):
        self.search_service = search_service
        self.favourites_store = favourites_store
        self.playback = playback
        self.query = query
        self.status = Status()
        self.results: List[TrackRecord] = []
        self.filter = Filter.ALL
        self.loading = False
        self.selected: Optional[TrackRecord] = None
        self._favourites: Dict[int, FavouriteRecord] = {
            f.track_id: f for f in favourites_store.load()
        }

    @property
    def favourites(self) -> List[FavouriteRecord]:
        """Favourites, most recently added first."""
        return list(self._favourites.values())

    @property
    def playing_url(self) -> Optional[str]:
        return self.playback.current_url

    def set_query(self, text: str) -> None:
        self.query = text

    # --- Search ---
    def begin_search(self, term: str) -> Optional[str]:
        """Marks a search as started. Returns the stripped term, or None for a blank one."""
        term = term.strip()
        if not term:
            return None
        self.status = Status(StatusKind.SEARCHING, term)
        self.loading = True
        self.playback.stop()
        return term

    def finish_search(self, term: str, outcome: SearchOutcome) -> None:
        if isinstance(outcome, Success):
            self.results = list(outcome.tracks)
            self.status = Status(StatusKind.RESULTS_FOUND, term)
        elif isinstance(outcome, Empty):
            self.results = []
            self.status = Status(StatusKind.NO_RESULTS, term)
        elif isinstance(outcome, Failure):
            # Previous results stay on screen.
            self.status = Status(StatusKind.ERROR, term)
        self.loading = False
        if self.selected and self.selected.track_id not in {t.track_id for t in self.results}:
            self.selected = None

    def run_search(self, term: str) -> Optional[SearchOutcome]:
        """Searches synchronously and commits the outcome."""
        term = self.begin_search(term)
        if term is None:
            return None
        outcome = self.search_service.search(term)
        self.finish_search(term, outcome)
        return outcome

    # --- Favourites ---
    def is_favourite(self, track: Union[TrackRecord, FavouriteRecord]) -> bool:
        return track.track_id in self._favourites

    def toggle_favourite(self, track: TrackRecord) -> bool:
        """Adds or removes track from favourites. Returns True if it was added."""
        if track.track_id in self._favourites:
            del self._favourites[track.track_id]
            added = False
        else:
            self._favourites = {track.track_id: track.to_favourite(), **self._favourites}
            added = True
        self.favourites_store.save(self._favourites.values())
        logger.info("%s favourite %d", "Added" if added else "Removed", track.track_id)
        return added

    def set_filter(self, mode: Filter) -> None:
        self.filter = mode

    def derive_visible(self) -> List[TrackRecord]:
        if self.filter is Filter.FAVOURITES:
            return [t for t in self.results if t.track_id in self._favourites]
        return list(self.results)

    @property
    def visible(self) -> List[TrackRecord]:
        return self.derive_visible()

    # --- Playback ---
    def toggle_preview(self, track: Union[TrackRecord, str, None]) -> None:
        url = track.preview_url if isinstance(track, TrackRecord) else track
        self.playback.toggle(url)

    def stop_preview(self) -> None:
        self.playback.stop()

    # --- Selection ---
    def select(self, track_id: Optional[int]) -> Optional[TrackRecord]:
        self.selected = next((t for t in self.results if t.track_id == track_id), None)
        return self.selected

    def snapshot(self) -> AppState:
        return AppState(
            query=self.query,
            status=self.status,
            results=tuple(self.results),
            visible=tuple(self.derive_visible()),
            favourites=tuple(self.favourites),
            filter=self.filter,
            playing_url=self.playing_url,
            loading=self.loading,
            selected=self.selected,
        )
