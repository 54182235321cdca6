"""
Tests for the hosted (PostgREST) profile store. HTTP is mocked.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from genexchange.labels import FREE_TEXT_CATEGORY_ID
from genexchange.retry import CircuitBreaker
from genexchange.storage import ProfileNotFoundError, StoreError
from genexchange.supabase import SupabaseStore

PROFILES = [
    {"id": "p-y1", "user_id": "u-y1", "user_type": "youth", "full_name": "Kim Minjun", "age": 24, "bio": None},
    {"id": "p-s1", "user_id": "u-s1", "user_type": "senior", "full_name": "Park Soonja", "age": 70, "bio": "hi"},
    {"id": "p-s2", "user_id": "u-s2", "user_type": "senior", "full_name": "Lee Chulsoo", "age": 66, "bio": ""},
]
CATEGORIES = [{"id": "cat-cook", "name": "cooking"}, {"id": "cat-phone", "name": "smartphone"}]
ASSETS = [
    {"id": "a1", "profile_id": "p-y1", "category_id": "cat-phone", "description": "kakaotalk"},
    {"id": "a2", "profile_id": "p-s1", "category_id": "cat-cook", "description": "kimchi"},
    {"id": "a3", "profile_id": "p-s2", "category_id": FREE_TEXT_CATEGORY_ID, "description": "woodworking"},
]
NEEDS = [
    {"id": "n1", "profile_id": "p-y1", "category_id": "cat-cook", "description": ""},
    {"id": "n2", "profile_id": "p-s1", "category_id": "cat-phone", "description": ""},
]


def _response(status: int, payload, url: str = "https://demo.supabase.co/rest/v1/x") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(payload).encode("utf-8")
    resp.url = url
    return resp


def _in_values(param: str):
    return [v.strip('"') for v in param[len("in.("):-1].split(",")]


def fake_backend(url, params=None, timeout=None):
    """Answer PostgREST-style selects from the tables above."""
    table = url.rsplit("/", 1)[-1]
    params = params or {}
    if table == "categories":
        return _response(200, CATEGORIES, url)
    if table == "profiles":
        rows = PROFILES
        if "user_id" in params:
            rows = [r for r in rows if r["user_id"] == params["user_id"][len("eq."):]]
        if "user_type" in params:
            rows = [r for r in rows if r["user_type"] == params["user_type"][len("eq."):]]
        if "id" in params:
            rows = [r for r in rows if r["id"] != params["id"][len("neq."):]]
        return _response(200, rows, url)
    source = {"profile_assets": ASSETS, "profile_needs": NEEDS}[table]
    ids = _in_values(params["profile_id"])
    return _response(200, [r for r in source if r["profile_id"] in ids], url)


@pytest.fixture
def http():
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = fake_backend
    return session


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("genexchange.retry.time.sleep", lambda s: None)


@pytest.fixture
def hosted(http):
    return SupabaseStore("https://demo.supabase.co/", "anon-key", timeout=5, session=http)


class TestSupabaseStoreSetup:
    def test_auth_headers(self, hosted, http):
        assert http.headers["apikey"] == "anon-key"
        assert http.headers["Authorization"] == "Bearer anon-key"
        assert hosted.base_url == "https://demo.supabase.co/rest/v1"

    def test_requires_url_and_key(self, http):
        with pytest.raises(ValueError, match="SUPABASE_URL"):
            SupabaseStore("", "key", session=http)
        with pytest.raises(ValueError, match="SUPABASE_KEY"):
            SupabaseStore("https://demo.supabase.co", "", session=http)


class TestSupabaseReads:
    def test_load_profile_resolves_labels(self, hosted):
        profile = hosted.load_profile("u-y1")

        assert profile.id == "p-y1"
        assert profile.role == "youth"
        assert profile.bio == ""
        assert [o.label for o in profile.offerings] == ["smartphone"]
        assert profile.offerings[0].description == "kakaotalk"
        assert [w.label for w in profile.wants] == ["cooking"]

    def test_missing_profile(self, hosted):
        with pytest.raises(ProfileNotFoundError):
            hosted.load_profile("u-nobody")

    def test_candidates_are_opposite_role(self, hosted):
        viewer = hosted.load_profile("u-y1")

        candidates = hosted.list_candidates(viewer)

        assert [c.id for c in candidates] == ["p-s1", "p-s2"]
        assert [o.label for o in candidates[1].offerings] == ["woodworking"]
        assert candidates[1].wants == []

    def test_candidate_query_params(self, hosted, http):
        viewer = hosted.load_profile("u-y1")
        hosted.list_candidates(viewer)

        profile_calls = [c for c in http.get.call_args_list if c.args[0].endswith("/profiles")]
        params = profile_calls[-1].kwargs["params"]
        assert params["user_type"] == "eq.senior"
        assert params["id"] == "neq.p-y1"
        assert params["order"] == "created_at.asc"

    def test_categories_fetched_once(self, hosted, http):
        viewer = hosted.load_profile("u-y1")
        hosted.list_candidates(viewer)

        category_calls = [c for c in http.get.call_args_list if c.args[0].endswith("/categories")]
        assert len(category_calls) == 1


class TestSupabaseErrors:
    def test_http_error_becomes_store_error(self, hosted, http):
        http.get.side_effect = lambda url, params=None, timeout=None: _response(401, {"message": "bad key"}, url)

        with pytest.raises(StoreError, match="401"):
            hosted.load_profile("u-y1")

    def test_non_json_body_becomes_store_error(self, hosted, http):
        def html_page(url, params=None, timeout=None):
            resp = _response(200, None, url)
            resp._content = b"<html><body>Bad gateway</body></html>"
            return resp

        http.get.side_effect = html_page

        with pytest.raises(StoreError, match="invalid JSON"):
            hosted.load_profile("u-y1")

    def test_retries_server_errors(self, hosted, http, no_sleep):
        calls = [0]

        def flaky(url, params=None, timeout=None):
            calls[0] += 1
            if calls[0] == 1:
                return _response(503, {}, url)
            return fake_backend(url, params, timeout)

        http.get.side_effect = flaky

        assert hosted.load_profile("u-y1").id == "p-y1"

    def test_timeouts_exhaust_into_store_error(self, hosted, http, no_sleep):
        http.get.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(StoreError, match="unreachable"):
            hosted.load_profile("u-y1")
        assert http.get.call_count == 4  # initial + 3 retries

    def test_circuit_opens_after_repeated_failures(self, http, no_sleep):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, expected_exception=Exception)
        hosted = SupabaseStore("https://demo.supabase.co", "key", session=http, breaker=breaker)
        http.get.side_effect = requests.exceptions.ConnectionError("connection refused")

        with pytest.raises(StoreError):
            hosted.load_profile("u-y1")
        calls_after_first = http.get.call_count

        with pytest.raises(StoreError, match="OPEN"):
            hosted.load_profile("u-y1")
        assert http.get.call_count == calls_after_first
