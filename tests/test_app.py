"""
Pilot tests for the Textual app: startup search, loading state, preview
handling and end-of-clip notifications.
Run with: pytest tests/
"""
import asyncio
import threading

import pytest
from textual.widgets import Button

import main
from config import Config
from conftest import FakeResponse, FakeSession, make_item
from main import MusicFinderApp
from models import StatusKind

URL_1 = "https://example.test/preview/1.m4a"


def results_session(*items):
    return FakeSession(FakeResponse(payload={"resultCount": len(items), "results": list(items)}))


def make_app(session, favourites_store, **kwargs):
    service = main.MusicSearchService(Config().SEARCH_URL, session=session)
    return MusicFinderApp(service, favourites_store, Config(**kwargs))


class BlockingSession(FakeSession):
    """Holds every GET until released, so the app stays in its loading state."""
    def __init__(self, response=None):
        super().__init__(response)
        self.release = threading.Event()

    def get(self, url, params=None, timeout=None):
        self.release.wait(timeout=5)
        return super().get(url, params=params, timeout=timeout)


class RaisingSearch:
    def search(self, term):
        raise RuntimeError("search backend exploded")


class RecordingAudio:
    """Replaces MpvAudio so no player process is started."""
    def __init__(self, url, on_ended, command):
        self.url = url
        self.on_ended = on_ended
        self.command = command

    def play(self):
        pass

    def pause(self):
        pass

    def set_source(self, url):
        self.url = url

    def close(self):
        pass


class TestStartup:
    async def test_searches_default_query_on_mount(self, favourites_store):
        session = results_session(make_item(1), make_item(2))
        app = make_app(session, favourites_store, DEFAULT_QUERY="Oasis")
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert session.calls[0]["params"]["term"] == "Oasis"
            assert app.model.status.kind is StatusKind.RESULTS_FOUND
            assert [t.track_id for t in app.app_state.visible] == [1, 2]

    async def test_search_button_disabled_while_loading(self, favourites_store):
        session = BlockingSession(FakeResponse(payload={"results": [make_item(1)]}))
        app = make_app(session, favourites_store)
        async with app.run_test() as pilot:
            await pilot.pause()
            button = app.query_one("#search-button", Button)
            try:
                assert app.app_state.loading
                assert button.disabled
                assert str(button.label) == "Searching..."
            finally:
                session.release.set()
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert not button.disabled
            assert str(button.label) == "Search"


class TestSearchErrors:
    async def test_deeply_nested_response_shows_error(self, favourites_store):
        session = FakeSession(FakeResponse(json_error=RecursionError("maximum recursion depth exceeded")))
        app = make_app(session, favourites_store)
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.is_running
            assert app.app_state.status.message == "Something went wrong. Try again."
            assert not app.app_state.loading

    async def test_unexpected_search_exception_shows_error(self, favourites_store):
        app = MusicFinderApp(RaisingSearch(), favourites_store, Config())
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.is_running
            assert app.model.status.kind is StatusKind.ERROR
            assert not app.model.loading


class TestPreview:
    async def test_track_without_preview_never_reaches_player(self, favourites_store, audio_factory):
        session = results_session(make_item(1, preview=False))
        app = make_app(session, favourites_store)
        app.playback.resource_factory = audio_factory
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            app.model.select(1)
            app.refresh_state()
            app.action_toggle_preview()
            assert audio_factory.created == []
            assert app.model.playing_url is None

    async def test_end_of_clip_is_handled_on_ui_thread(self, favourites_store, monkeypatch):
        created = []

        def audio(url, on_ended, command):
            resource = RecordingAudio(url, on_ended, command)
            created.append(resource)
            return resource

        monkeypatch.setattr(main, "MpvAudio", audio)
        app = make_app(results_session(make_item(1)), favourites_store)
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()

            ui_thread = threading.current_thread()
            threads = []
            finish_preview = app.finish_preview

            def recording_finish(on_ended, url):
                threads.append(threading.current_thread())
                finish_preview(on_ended, url)
            app.finish_preview = recording_finish

            app.model.toggle_preview(URL_1)
            app.refresh_state()
            assert app.app_state.playing_url == URL_1
            assert created[0].command == "mpv"

            # The player reports the end from its own watcher thread.
            await asyncio.to_thread(created[0].on_ended, URL_1)
            await pilot.pause()
            assert threads == [ui_thread]
            assert app.model.playing_url is None
            assert app.app_state.playing_url is None
