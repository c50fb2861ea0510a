"""Integration tests for SQLite job storage, link admission and robots cancellation."""

from __future__ import annotations

import sqlite3

import pytest

from core.models import Locator, RobotsRule
from core.pipeline import StoreError
from storage.sqlite import SQLiteJobStore


def _loc(url: str) -> Locator:
    return Locator.from_url(url)


@pytest.fixture
def store(temp_db) -> SQLiteJobStore:
    job_store = SQLiteJobStore(temp_db)
    job_store.add_host_whitelist("example.edu")
    return job_store


def _job_for(store: SQLiteJobStore, url: str):
    matches = [job for job in store.load_pending_jobs() if job.locator.url == url]
    assert len(matches) == 1, url
    return matches[0]


@pytest.mark.integration
def test_seed_creates_content_and_robots_jobs(store: SQLiteJobStore) -> None:
    created = store.add_seed("http://www.example.edu/")

    assert {job.locator.url for job in created} == {
        "http://www.example.edu/",
        "http://www.example.edu/robots.txt",
    }
    assert store.load_pending_jobs() == created
    assert store.count_pending() == 2


@pytest.mark.integration
def test_seed_is_idempotent(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")

    assert store.add_seed("http://www.example.edu/") == set()
    assert store.count_pending() == 2


@pytest.mark.integration
def test_seed_rejects_non_http_urls(store: SQLiteJobStore) -> None:
    with pytest.raises(ValueError):
        store.add_seed("ftp://files.example.edu/")
    with pytest.raises(ValueError):
        store.add_seed("not a url")


@pytest.mark.integration
def test_initialize_schema_is_idempotent(temp_db) -> None:
    SQLiteJobStore(temp_db).add_seed("http://www.example.edu/")

    reopened = SQLiteJobStore(temp_db)

    assert reopened.count_pending() == 2


@pytest.mark.integration
def test_complete_html_admits_links_and_creates_robots_jobs(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    created = store.complete_html(
        page,
        {
            _loc("http://www.example.edu/about.html"),
            _loc("http://cs.example.edu/"),
            _loc("http://www.example.edu/"),
        },
        "<html>home</html>",
    )

    assert {job.locator.url for job in created} == {
        "http://www.example.edu/about.html",
        "http://cs.example.edu/",
        "http://cs.example.edu/robots.txt",
    }
    assert store.get_document(page.id) == "<html>home</html>"
    assert page not in store.load_pending_jobs()


@pytest.mark.integration
def test_complete_html_applies_host_policy(store: SQLiteJobStore) -> None:
    store.add_host_blacklist("calendar.example.edu")
    store.add_extension_blacklist(".PDF")
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    created = store.complete_html(
        page,
        {
            _loc("http://www.other.org/"),
            _loc("http://notexample.edu/"),
            _loc("http://calendar.example.edu/"),
            _loc("http://www.example.edu/paper.pdf"),
            _loc("http://www.example.edu/Slides.Pdf"),
            _loc("http://example.edu/ok.html"),
        },
        "",
    )

    assert {job.locator.url for job in created} == {
        "http://example.edu/ok.html",
        "http://example.edu/robots.txt",
    }


@pytest.mark.integration
def test_empty_whitelist_admits_nothing(temp_db) -> None:
    store = SQLiteJobStore(temp_db)
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    assert store.complete_html(page, {_loc("http://www.example.edu/a")}, "") == set()


@pytest.mark.integration
def test_complete_html_respects_stored_robots_rules(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    robots = _job_for(store, "http://www.example.edu/robots.txt")
    page = _job_for(store, "http://www.example.edu/")
    store.complete_robots(robots, {RobotsRule("http", "www.example.edu", "/private/", False)})

    created = store.complete_html(
        page,
        {_loc("http://www.example.edu/private/x"), _loc("http://www.example.edu/public/y")},
        "",
    )

    assert {job.locator.url for job in created} == {"http://www.example.edu/public/y"}


@pytest.mark.integration
def test_no_second_robots_job_while_first_is_pending(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    created = store.complete_html(page, {_loc("http://www.example.edu/a")}, "")

    assert {job.locator.url for job in created} == {"http://www.example.edu/a"}


@pytest.mark.integration
def test_robots_link_does_not_duplicate_itself(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    created = store.complete_html(page, {_loc("http://cs.example.edu/robots.txt")}, "")

    assert {job.locator.url for job in created} == {"http://cs.example.edu/robots.txt"}


@pytest.mark.integration
def test_content_with_nul_is_not_stored(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    store.complete_html(page, set(), "bad\0content")

    assert store.get_document(page.id) is None
    assert page not in store.load_pending_jobs()


@pytest.mark.integration
def test_complete_robots_cancels_disallowed_pending_jobs(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    robots = _job_for(store, "http://www.example.edu/robots.txt")
    page = _job_for(store, "http://www.example.edu/")
    store.complete_html(
        page,
        {_loc("http://www.example.edu/a/1"), _loc("http://www.example.edu/b/1")},
        "",
    )
    other_protocol = store.add_seed("https://www.example.edu/a/2")

    cancelled = store.complete_robots(
        robots,
        {RobotsRule("http", "www.example.edu", "/a/", False)},
    )

    assert {job.locator.url for job in cancelled} == {"http://www.example.edu/a/1"}
    pending_urls = {job.locator.url for job in store.load_pending_jobs()}
    assert "http://www.example.edu/a/1" not in pending_urls
    assert "http://www.example.edu/b/1" in pending_urls
    assert "http://www.example.edu/robots.txt" not in pending_urls
    assert other_protocol <= store.load_pending_jobs()
    assert store.get_rules("http", "www.example.edu") == {
        RobotsRule("http", "www.example.edu", "/", True),
        RobotsRule("http", "www.example.edu", "/a/", False),
    }


@pytest.mark.integration
def test_disallow_all_never_cancels_the_robots_job_itself(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    robots = _job_for(store, "http://www.example.edu/robots.txt")

    cancelled = store.complete_robots(robots, {RobotsRule("http", "www.example.edu", "/", False)})

    assert {job.locator.url for job in cancelled} == {"http://www.example.edu/"}
    assert store.count_pending() == 0


@pytest.mark.integration
def test_cancel_html_marks_job_complete(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")

    store.cancel_html(page)

    assert page not in store.load_pending_jobs()
    assert store.get_document(page.id) is None


@pytest.mark.integration
def test_backing_store_failure_raises_store_error(temp_db) -> None:
    store = SQLiteJobStore(temp_db)
    with sqlite3.connect(temp_db) as connection:
        connection.execute("DROP TABLE url")

    with pytest.raises(StoreError) as exc_info:
        store.load_pending_jobs()

    assert exc_info.value.operation == "load_pending_jobs"
    assert isinstance(exc_info.value.cause, sqlite3.OperationalError)
    assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)


@pytest.mark.integration
def test_failed_operation_leaves_no_partial_change(store: SQLiteJobStore, temp_db) -> None:
    store.add_seed("http://www.example.edu/")
    page = _job_for(store, "http://www.example.edu/")
    with sqlite3.connect(temp_db) as connection:
        connection.execute("DROP TABLE document")

    with pytest.raises(StoreError):
        store.complete_html(page, {_loc("http://www.example.edu/new")}, "content")

    assert {job.locator.url for job in store.load_pending_jobs()} == {
        "http://www.example.edu/",
        "http://www.example.edu/robots.txt",
    }


@pytest.mark.integration
def test_completing_job_cancelled_while_in_flight_still_admits_links(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/a")
    robots = _job_for(store, "http://www.example.edu/robots.txt")
    in_flight = _job_for(store, "http://www.example.edu/a")
    cancelled = store.complete_robots(robots, {RobotsRule("http", "www.example.edu", "/a", False)})
    assert cancelled == {in_flight}

    created = store.complete_html(in_flight, {_loc("http://www.example.edu/b")}, "<html>hi</html>")

    assert {job.locator.url for job in created} == {"http://www.example.edu/b"}
    assert store.get_document(in_flight.id) is None
    assert {job.locator.url for job in store.load_pending_jobs()} == {"http://www.example.edu/b"}


@pytest.mark.integration
def test_cancelling_job_cancelled_while_in_flight_is_harmless(store: SQLiteJobStore) -> None:
    store.add_seed("http://www.example.edu/a")
    robots = _job_for(store, "http://www.example.edu/robots.txt")
    in_flight = _job_for(store, "http://www.example.edu/a")
    store.complete_robots(robots, {RobotsRule("http", "www.example.edu", "/a", False)})

    store.cancel_html(in_flight)

    assert store.count_pending() == 0
