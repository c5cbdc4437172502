from __future__ import annotations

import json
from unittest.mock import call

import pytest

from app.infrastructure.external.sessions_api.api_client import ApiClient
from app.infrastructure.external.sessions_api.paginator import Paginator
from app.infrastructure.external.sessions_api.types import (
    ApiCredentials,
    Deadline,
    PaginationConfig,
    RetryPolicy,
)
from app.shared.exceptions.sync import ConfigurationError, PartialBatchError, TerminalHttpError

BASE_URL = "https://api.test/v1"


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self.text = "" if payload is None else json.dumps(payload)


class _PagedSession:
    """
    Sirve páginas según (método, número de página).

    pages: {"GET": {1: payload, 2: _FakeResponse(404)}}. Página ausente = [].
    """

    def __init__(self, pages: dict, on_request=None) -> None:
        self._pages = pages
        self._on_request = on_request
        self.calls: list[dict] = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self._on_request:
            self._on_request()
        page = kwargs["params"]["page"]
        item = self._pages.get(kwargs["method"], {}).get(page, [])
        if isinstance(item, _FakeResponse):
            return item
        return _FakeResponse(200, item)


def _paginator(pages: dict, *, token: str = "tok", on_request=None):
    session = _PagedSession(pages, on_request=on_request)
    client = ApiClient(
        ApiCredentials(base_url=BASE_URL, token=token),
        retry=RetryPolicy(max_attempts=1, base_delay_ms=0),
        session=session,
    )
    return Paginator(client), session


def _config(**overrides) -> PaginationConfig:
    values = {"page_size": 2, "page_delay_ms": 0}
    values.update(overrides)
    return PaginationConfig(**values)


def _page(start: int) -> list[dict]:
    return [{"id": start}, {"id": start + 1}]


def test_full_pages_until_empty_page(no_sleep) -> None:
    paginator, session = _paginator({"GET": {1: _page(1), 2: _page(3), 3: _page(5)}})

    result = paginator.paginate("/sessions", _config())

    assert [item["id"] for item in result.items] == [1, 2, 3, 4, 5, 6]
    assert result.pages_fetched == 3
    # k páginas llenas + 1 request final vacío
    assert result.calls == 4
    assert len(session.calls) == 4
    assert result.ok
    assert session.calls[0]["url"] == f"{BASE_URL}/sessions"
    assert session.calls[0]["params"] == {"page": 1, "limit": 2}


def test_short_page_ends_pagination(no_sleep) -> None:
    paginator, session = _paginator({"GET": {1: {"data": _page(1)}, 2: {"data": [{"id": 3}]}}})

    items = paginator.fetch_all("/sessions", _config())

    assert len(items) == 3
    assert len(session.calls) == 2


def test_failing_middle_page_keeps_earlier_items(no_sleep) -> None:
    paginator, session = _paginator(
        {"GET": {1: _page(1), 2: _page(3), 3: _FakeResponse(404), 4: _page(7), 5: _page(9)}}
    )

    result = paginator.paginate("/sessions", _config())

    assert [item["id"] for item in result.items] == [1, 2, 3, 4]
    assert result.pages_fetched == 2
    assert len(session.calls) == 3
    assert isinstance(result.error, PartialBatchError)
    assert isinstance(result.error.cause, TerminalHttpError)
    assert not result.ok


def test_post_sends_body_template_and_page_params(no_sleep) -> None:
    paginator, session = _paginator({"POST": {1: [{"id": 1}]}})

    paginator.paginate(
        "/sessions/search",
        _config(method="POST", body_template={"status": "open"}, static_params={"org": "x"}),
    )

    sent = session.calls[0]
    assert sent["method"] == "POST"
    assert json.loads(sent["data"]) == {"status": "open"}
    assert sent["params"] == {"org": "x", "page": 1, "limit": 2}


def test_get_sends_no_body(no_sleep) -> None:
    paginator, session = _paginator({"GET": {1: [{"id": 1}]}})
    paginator.paginate("/sessions", _config(body_template={"ignored": True}))
    assert session.calls[0]["data"] is None


def test_page_delay_is_applied_between_pages(no_sleep) -> None:
    paginator, _ = _paginator({"GET": {1: _page(1), 2: _page(3)}})

    paginator.paginate("/sessions", _config(page_delay_ms=250))

    assert no_sleep.call_args_list == [call(0.25), call(0.25)]


def test_start_page_is_honored(no_sleep) -> None:
    paginator, session = _paginator({"GET": {0: [{"id": 1}]}})
    items = paginator.fetch_all("/sessions", _config(start_page=0))
    assert items == [{"id": 1}]
    assert session.calls[0]["params"]["page"] == 0


def test_max_pages_stops_early(no_sleep) -> None:
    pages = {"GET": {n: _page(n * 10) for n in range(1, 10)}}
    paginator, session = _paginator(pages)

    result = paginator.paginate("/sessions", _config(max_pages=2))

    assert result.pages_fetched == 2
    assert result.stopped_early is True
    assert len(session.calls) == 2


def test_deadline_cuts_pagination_between_pages(no_sleep) -> None:
    now = [0.0]

    def advance() -> None:
        now[0] += 6.0

    pages = {"GET": {n: _page(n * 10) for n in range(1, 10)}}
    paginator, session = _paginator(pages, on_request=advance)
    deadline = Deadline(10, clock=lambda: now[0])

    result = paginator.paginate("/sessions", _config(), deadline=deadline)

    assert result.pages_fetched == 2
    assert result.stopped_early is True
    assert len(session.calls) == 2


def test_configuration_errors_are_not_absorbed(no_sleep) -> None:
    paginator, session = _paginator({}, token="")

    with pytest.raises(ConfigurationError):
        paginator.paginate("/sessions", _config())

    assert session.calls == []


def test_fallback_tries_post_when_get_returns_nothing(no_sleep) -> None:
    paginator, session = _paginator({"GET": {1: []}, "POST": {1: [{"id": "p1"}]}})
    get_config = _config()

    result = paginator.fetch_all_with_fallback("/sessions", [get_config, get_config.with_method("POST")])

    assert result.items == [{"id": "p1"}]
    assert [c["method"] for c in session.calls] == ["GET", "POST"]


def test_fallback_stops_at_first_method_with_items(no_sleep) -> None:
    paginator, session = _paginator({"GET": {1: [{"id": "g1"}]}, "POST": {1: [{"id": "p1"}]}})
    get_config = _config()

    result = paginator.fetch_all_with_fallback("/sessions", [get_config, get_config.with_method("POST")])

    assert result.items == [{"id": "g1"}]
    assert [c["method"] for c in session.calls] == ["GET"]


def test_fallback_returns_last_result_when_every_method_fails(no_sleep) -> None:
    paginator, _ = _paginator({"GET": {1: _FakeResponse(405)}, "POST": {1: _FakeResponse(400)}})
    get_config = _config()

    result = paginator.fetch_all_with_fallback("/sessions", [get_config, get_config.with_method("POST")])

    assert result.items == []
    assert result.error.cause.http_status == 400
