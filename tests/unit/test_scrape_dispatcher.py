import random
import threading

import pytest
import requests

from persistence.reference_store import ReferenceStore
from services.scraping import LrsBillScraper, ScrapeDispatcher
from spotcheck.errors import ReferenceSourceUnavailable


class FakeScraper:
    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    def fetch(self, key):
        self.calls += 1
        result = self.results.pop(0) if self.results else b"<html>ok</html>"
        if isinstance(result, Exception):
            raise result
        return result


def _dispatcher(settings, scraper, **kwargs):
    store = ReferenceStore.from_settings(settings)
    return store, ScrapeDispatcher(store, scraper, settings, rng=random.Random(7), **kwargs)


def test_empty_queue_returns_none(settings) -> None:
    _, dispatcher = _dispatcher(settings, FakeScraper())

    assert dispatcher.dispatch_once() is None


def test_successful_scrape_is_saved_and_dequeued(settings, s100) -> None:
    store, dispatcher = _dispatcher(settings, FakeScraper(OSError("reset"), b"<html>page</html>"))
    store.enqueue(s100, 1)

    outcome = dispatcher.dispatch_once()

    assert outcome.status == "saved"
    assert outcome.attempts == 2
    assert outcome.scrape_file.file_path.read_bytes() == b"<html>page</html>"
    assert store.list_queue().total == 0
    assert [item.file_name for item in store.list_incoming()] == [outcome.scrape_file.file_name]


def test_repeated_failures_dead_letter_the_bill(settings, s100) -> None:
    failure = ReferenceSourceUnavailable("LRS", "outage")
    scraper = FakeScraper(failure, failure, failure)
    store, dispatcher = _dispatcher(settings, scraper)
    store.enqueue(s100, 2)

    outcome = dispatcher.dispatch_once()

    assert outcome.status == "dead_lettered"
    assert outcome.attempts == 3
    assert scraper.calls == 3
    assert store.list_queue().total == 0
    (dead,) = store.list_dead_letters()
    assert dead.key == s100
    assert dead.priority == 2


def test_any_scraper_error_is_retried_then_dead_lettered(settings, s100) -> None:
    scraper = FakeScraper(ValueError("bad body"), ValueError("bad body"), ValueError("bad body"))
    store, dispatcher = _dispatcher(settings, scraper)
    store.enqueue(s100, 1)

    outcome = dispatcher.dispatch_once()

    assert outcome.status == "dead_lettered"
    assert scraper.calls == 3
    assert "ValueError" in outcome.error
    assert store.list_queue().total == 0
    assert [dead.key for dead in store.list_dead_letters()] == [s100]


def test_failed_save_is_retried(settings, s100, monkeypatch) -> None:
    store, dispatcher = _dispatcher(settings, FakeScraper())
    save_content = store.save_content
    failures = [OSError("disk full")]

    def flaky_save(key, content, scraped_at=None):
        if failures:
            raise failures.pop()
        return save_content(key, content, scraped_at)

    monkeypatch.setattr(store, "save_content", flaky_save)
    store.enqueue(s100, 1)

    outcome = dispatcher.dispatch_once()

    assert outcome.status == "saved"
    assert outcome.attempts == 2
    assert store.list_queue().total == 0


def test_reenqueue_during_scrape_is_kept(settings, s100, clock) -> None:
    store = ReferenceStore(
        settings.spotcheck_db_path,
        staging_dir=settings.scrape_staging_bill_dir,
        archive_dir=settings.scrape_archive_bill_dir,
        clock=clock,
    )

    class RequeueingScraper:
        def fetch(self, key):
            clock.advance(minutes=1)
            store.enqueue(key, 9)
            return b"<html></html>"

    dispatcher = ScrapeDispatcher(store, RequeueingScraper(), settings)
    store.enqueue(s100, 1)

    assert dispatcher.dispatch_once().status == "saved"

    (entry,) = store.list_queue().items
    assert entry.key == s100
    assert entry.priority == 9


def test_run_forever_survives_dispatch_errors(settings, monkeypatch) -> None:
    store, dispatcher = _dispatcher(settings, FakeScraper())
    calls = []

    def broken_head():
        calls.append(1)
        if len(calls) == 2:
            dispatcher.stop()
        raise RuntimeError("database is locked")

    monkeypatch.setattr(store, "dequeue_head", broken_head)

    dispatcher.run_forever()

    assert len(calls) == 2


def test_head_already_in_flight(settings, s100) -> None:
    nested = []

    class ReentrantScraper:
        def fetch(self, key):
            nested.append(dispatcher.dispatch_once())
            return b"<html></html>"

    store, dispatcher = _dispatcher(settings, ReentrantScraper())
    store.enqueue(s100, 0)

    assert dispatcher.dispatch_once().status == "saved"
    assert [outcome.status for outcome in nested] == ["in_flight"]


def test_stop_interrupts_backoff(settings, s100) -> None:
    stop = threading.Event()
    stop.set()
    store, dispatcher = _dispatcher(settings, FakeScraper(OSError("reset")), stop_event=stop)
    store.enqueue(s100, 0)

    outcome = dispatcher.dispatch_once()

    assert outcome.status == "interrupted"
    assert store.list_queue().total == 1


def test_backoff_is_capped_and_jittered(settings) -> None:
    settings.scrape_backoff_base_sec = 2.0
    settings.scrape_backoff_max_sec = 10.0
    _, dispatcher = _dispatcher(settings, FakeScraper())

    assert 1.0 <= dispatcher.backoff_delay(1) <= 3.0
    assert 5.0 <= dispatcher.backoff_delay(10) <= 15.0


class FakeResponse:
    def __init__(self, text: str, status: int = 200) -> None:
        self.text = text
        self.content = text.encode()
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.requests: list[dict] = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        return self.response


def test_lrs_scraper_requests_bill_page(settings, s100) -> None:
    session = FakeSession(FakeResponse("<html>bill</html>"))

    content = LrsBillScraper(settings, session=session).fetch(s100)

    assert content == b"<html>bill</html>"
    assert session.requests[0]["params"] == {"bn": "S100", "term": "2023"}
    assert session.requests[0]["url"] == settings.lrs_base_url


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse("<html><h2>404 - Processing Error</h2></html>"),
        FakeResponse("gateway", status=502),
    ],
)
def test_lrs_scraper_outages(settings, s100, response) -> None:
    with pytest.raises(ReferenceSourceUnavailable):
        LrsBillScraper(settings, session=FakeSession(response)).fetch(s100)
