"""Test configuration and fixtures"""

import pytest
import requests

from services import FavouritesStore, KeyValueStore, PlaybackController


class FakeResponse:
    def __init__(self, status_code=200, payload=None, json_error=None):
        self.status_code = status_code
        self.payload = payload
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error", response=self)

    def json(self):
        if self.json_error:
            raise self.json_error
        return self.payload


class FakeSession:
    """Stands in for requests.Session and records every GET."""
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(payload={"resultCount": 0, "results": []})
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


class FakeAudio:
    """An in-memory audio resource that records the calls made on it."""
    def __init__(self, url, on_ended, events):
        self.url = url
        self.on_ended = on_ended
        self.events = events
        self.playing = False
        self.fail_on_play = False

    def play(self):
        if self.fail_on_play:
            from services import PlaybackError
            raise PlaybackError("player missing")
        self.playing = True
        self.events.append(("play", self.url))

    def pause(self):
        self.playing = False
        self.events.append(("pause", self.url))

    def set_source(self, url):
        self.events.append(("set_source", url))
        self.url = url

    def close(self):
        self.events.append(("close", self.url))

    def finish(self):
        self.playing = False
        self.on_ended(self.url)


class AudioFactory:
    def __init__(self):
        self.created = []
        self.events = []

    def __call__(self, url, on_ended):
        audio = FakeAudio(url, on_ended, self.events)
        self.created.append(audio)
        return audio


def make_item(track_id, name="Song", preview=True, **extra):
    item = {
        "wrapperType": "track",
        "kind": "song",
        "trackId": track_id,
        "trackName": f"{name} {track_id}",
        "artistName": "Drake",
        "collectionName": "Album",
        "artworkUrl100": f"https://example.test/art/{track_id}.jpg",
        "previewUrl": f"https://example.test/preview/{track_id}.m4a" if preview else None,
        "trackViewUrl": f"https://music.example.test/track/{track_id}",
    }
    item.update(extra)
    return item


@pytest.fixture
def kv_store():
    store = KeyValueStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def favourites_store(kv_store):
    return FavouritesStore(kv_store, "music-finder-favs-v1")


@pytest.fixture
def audio_factory():
    return AudioFactory()


@pytest.fixture
def playback(audio_factory):
    return PlaybackController(audio_factory)
