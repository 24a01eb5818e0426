# services.py
import json
import logging
import shutil
import sqlite3
import subprocess
import threading
import traceback
from typing import Callable, Iterable, List, Optional, Protocol

import requests

from models import Empty, Failure, FavouriteRecord, SearchOutcome, Success, TrackRecord

logger = logging.getLogger(__name__)


class PlaybackError(Exception):
    """Raised when the audio player cannot be started."""


class KeyValueStore:
    """A string key-value store kept in a single SQLite table."""
    def __init__(self, db_name: str):
        self.db_name = db_name
        self.conn = sqlite3.connect(db_name)
        self.create_table()

    def create_table(self):
        """Creates the kv table if it doesn't exist."""
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    def get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str):
        with self.conn:
            self.conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))

    def close(self):
        self.conn.close()


class FavouritesStore:
    """Persists the favourite list as JSON under one fixed key."""
    def __init__(self, kv: KeyValueStore, key: str):
        self.kv = kv
        self.key = key

    def load(self) -> List[FavouriteRecord]:
        """Returns the stored favourites, or an empty list if none are usable."""
        raw = self.kv.get(self.key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
            records = [FavouriteRecord.from_dict(item) for item in data]
        except (ValueError, RecursionError) as e:
            logger.warning("Ignoring unreadable favourites under %r: %s", self.key, e)
            return []

        unique: dict[int, FavouriteRecord] = {}
        for record in records:
            unique.setdefault(record.track_id, record)
        return list(unique.values())

    def save(self, favourites: Iterable[FavouriteRecord]):
        payload = json.dumps([f.to_dict() for f in favourites])
        self.kv.set(self.key, payload)


class MusicSearchService:
    """A service to handle calls to the catalog search endpoint."""
    def __init__(self, base_url: str, entity: str = "song", limit: int = 25,
                 timeout: Optional[float] = None, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.entity = entity
        self.limit = limit
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            if user_agent:
                session.headers.update({"User-Agent": user_agent})
        self.session = session

    def search(self, term: str) -> Optional[SearchOutcome]:
        """Performs the search. Returns None without a request for a blank term."""
        term = term.strip()
        if not term:
            return None

        params = {"term": term, "entity": self.entity, "limit": self.limit}
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            tracks = self._parse_payload(response.json())
        except (requests.RequestException, ValueError, RecursionError):
            logger.warning("Search for %r failed", term, exc_info=True)
            return Failure(traceback.format_exc())

        logger.info("Search for %r returned %d tracks", term, len(tracks))
        if not tracks:
            return Empty()
        return Success(tracks)

    def _parse_payload(self, payload) -> List[TrackRecord]:
        """Parses the response body into TrackRecords. Malformed items are skipped."""
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
        items = payload.get("results")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValueError(f"Expected 'results' to be a list, got {type(items).__name__}")
        tracks = []
        for item in items:
            try:
                tracks.append(TrackRecord.from_api(item))
            except ValueError as e:
                logger.warning("Skipping malformed search result: %s", e)
        return tracks


class AudioResource(Protocol):
    def play(self) -> None: ...
    def pause(self) -> None: ...
    def set_source(self, url: str) -> None: ...
    def close(self) -> None: ...


EndedCallback = Callable[[str], None]
AudioFactory = Callable[[str, EndedCallback], AudioResource]


class MpvAudio:
    """Plays one URL at a time through an external player process."""
    def __init__(self, url: str, on_ended: EndedCallback, command: str = "mpv"):
        self.url = url
        self.on_ended = on_ended
        self.command_name = command
        self.command_path = shutil.which(command)
        self._process: Optional[subprocess.Popen] = None
        self._watcher: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_available(self) -> bool:
        return self.command_path is not None

    @property
    def is_playing(self) -> bool:
        process = self._process
        return process is not None and process.poll() is None

    def play(self) -> None:
        if not self.is_available:
            raise PlaybackError(f"Command '{self.command_name}' not found.")
        with self._lock:
            self._terminate()
            try:
                process = subprocess.Popen(
                    [self.command_path, "--no-video", "--really-quiet", self.url],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as e:
                raise PlaybackError(f"Could not start '{self.command_name}': {e}") from e
            self._process = process
        self._watcher = threading.Thread(
            target=self._watch, args=(process, self.url), name="audio-ended", daemon=True)
        self._watcher.start()

    def pause(self) -> None:
        with self._lock:
            self._terminate()

    def set_source(self, url: str) -> None:
        self.pause()
        self.url = url

    def close(self) -> None:
        self.pause()

    def _terminate(self) -> None:
        # Callers hold the lock. Dropping the handle first marks the exit as ours.
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            process.kill()

    def _watch(self, process: subprocess.Popen, url: str) -> None:
        process.wait()
        with self._lock:
            natural = self._process is process
            if natural:
                self._process = None
        if natural:
            logger.debug("Preview finished: %s", url)
            self.on_ended(url)


class PlaybackController:
    """Owns the single audio resource and tracks which URL is playing."""
    def __init__(self, resource_factory: AudioFactory):
        self.resource_factory = resource_factory
        self._resource: Optional[AudioResource] = None
        self._current_url: Optional[str] = None

    @property
    def current_url(self) -> Optional[str]:
        return self._current_url

    def toggle(self, url: Optional[str]) -> None:
        """Plays url, or pauses it if it is already the one playing."""
        if not url:
            return
        if self._current_url == url:
            self.stop()
            return

        if self._resource is None:
            self._resource = self.resource_factory(url, self.handle_ended)
        else:
            self._resource.pause()
            self._resource.set_source(url)
        self._current_url = None
        self._resource.play()
        self._current_url = url

    def stop(self) -> None:
        if self._resource is not None:
            self._resource.pause()
        self._current_url = None

    def handle_ended(self, url: str) -> None:
        """Clears the playing URL when its clip reached the end."""
        if url == self._current_url:
            self._current_url = None

    def close(self) -> None:
        self.stop()
        if self._resource is not None:
            self._resource.close()
            self._resource = None
