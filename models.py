# models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

_DISPLAY_FIELDS = (
    ("track_name", "trackName"),
    ("artist_name", "artistName"),
    ("collection_name", "collectionName"),
    ("artwork_url100", "artworkUrl100"),
    ("preview_url", "previewUrl"),
)


def _parse_track_id(data: Any) -> int:
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    track_id = data.get("trackId")
    # bool is a subclass of int
    if isinstance(track_id, bool) or not isinstance(track_id, int):
        raise ValueError(f"Invalid trackId: {track_id!r}")
    return track_id


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"Invalid {key}: {value!r}")
    return value


@dataclass(frozen=True)
class FavouriteRecord:
    """The persisted projection of a track."""
    track_id: int
    track_name: Optional[str] = None
    artist_name: Optional[str] = None
    collection_name: Optional[str] = None
    artwork_url100: Optional[str] = None
    preview_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "FavouriteRecord":
        """Parses one stored record, raising ValueError if it is malformed."""
        track_id = _parse_track_id(data)
        return cls(track_id, **{attr: _optional_str(data, key) for attr, key in _DISPLAY_FIELDS})

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"trackId": self.track_id}
        for attr, key in _DISPLAY_FIELDS:
            payload[key] = getattr(self, attr)
        return payload


@dataclass(frozen=True)
class TrackRecord:
    """A data class to hold the fields of a single search result we use."""
    track_id: int
    track_name: Optional[str] = None
    artist_name: Optional[str] = None
    collection_name: Optional[str] = None
    artwork_url100: Optional[str] = None
    preview_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, item: Any) -> "TrackRecord":
        """Parses a single raw API item into our TrackRecord data model."""
        track_id = _parse_track_id(item)
        values = {attr: _optional_str(item, key) for attr, key in _DISPLAY_FIELDS}
        return cls(track_id, raw=dict(item), **values)

    @property
    def has_preview(self) -> bool:
        return bool(self.preview_url)

    def to_favourite(self) -> FavouriteRecord:
        return FavouriteRecord(
            track_id=self.track_id,
            track_name=self.track_name,
            artist_name=self.artist_name,
            collection_name=self.collection_name,
            artwork_url100=self.artwork_url100,
            preview_url=self.preview_url,
        )


class Filter(Enum):
    ALL = "all"
    FAVOURITES = "favs"


class StatusKind(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESULTS_FOUND = "results-found"
    NO_RESULTS = "no-results"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    kind: StatusKind = StatusKind.IDLE
    term: Optional[str] = None

    @property
    def message(self) -> str:
        if self.kind is StatusKind.SEARCHING:
            return "Searching..."
        if self.kind is StatusKind.RESULTS_FOUND:
            return f'Showing results for "{self.term}".'
        if self.kind is StatusKind.NO_RESULTS:
            return f'No results for "{self.term}". Try another search.'
        if self.kind is StatusKind.ERROR:
            return "Something went wrong. Try again."
        return "Type a search and press Enter."


class SearchOutcome:
    """Base class for the result of one catalog search."""


@dataclass(frozen=True)
class Success(SearchOutcome):
    tracks: List[TrackRecord]


@dataclass(frozen=True)
class Empty(SearchOutcome):
    pass


@dataclass(frozen=True)
class Failure(SearchOutcome):
    details: str = ""


@dataclass(frozen=True)
class AppState:
    """A single immutable snapshot of the entire application state."""
    query: str = ""
    status: Status = field(default_factory=Status)
    results: Tuple[TrackRecord, ...] = ()
    visible: Tuple[TrackRecord, ...] = ()
    favourites: Tuple[FavouriteRecord, ...] = ()
    filter: Filter = Filter.ALL
    playing_url: Optional[str] = None
    loading: bool = False
    selected: Optional[TrackRecord] = None

    def is_favourite(self, track_id: int) -> bool:
        return any(f.track_id == track_id for f in self.favourites)
