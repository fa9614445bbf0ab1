"""Tests for remote store clients."""
import asyncio
import json

import httpx
import pytest

from offlinekit.core.errors import NotFound, OfflineKitError, Unavailable, ValidationFailed
from offlinekit.core.schemas import EntityType
from offlinekit.remote.base import matches
from offlinekit.remote.http import HttpRemoteStore
from offlinekit.remote.memory import MemoryRemoteStore


def _run_http(handler, call, auth_token=""):
    """Run call(remote) against an HttpRemoteStore served by handler."""
    async def runner():
        async with HttpRemoteStore(
            "http://records.test",
            auth_token=auth_token,
            transport=httpx.MockTransport(handler),
        ) as remote:
            return await call(remote)

    return asyncio.run(runner())


class TestMatches:
    def test_empty_filter_matches(self):
        assert matches({"name": "Asha"}, None)
        assert matches({"name": "Asha"}, {})

    def test_field_equality(self):
        assert matches({"grade": "4", "name": "Asha"}, {"grade": "4"})
        assert not matches({"grade": "5"}, {"grade": "4"})
        assert not matches({}, {"grade": "4"})


class TestMemoryRemoteStore:
    """Test the in-process store."""

    def test_create_and_query(self):
        remote = MemoryRemoteStore()

        async def scenario():
            record = await remote.create(EntityType.STUDENT, {"name": "Asha"})
            return record, await remote.query(EntityType.STUDENT)

        record, found = asyncio.run(scenario())

        assert record.id
        assert [r.id for r in found] == [record.id]
        assert found[0].payload == {"name": "Asha"}

    def test_query_newest_first(self):
        remote = MemoryRemoteStore()

        async def scenario():
            first = await remote.create(EntityType.STUDENT, {"name": "Asha"})
            second = await remote.create(EntityType.STUDENT, {"name": "Ben"})
            return first, second, await remote.query(EntityType.STUDENT)

        first, second, found = asyncio.run(scenario())

        assert [r.id for r in found] == [second.id, first.id]

    def test_query_returns_copies(self):
        remote = MemoryRemoteStore()
        remote.seed(EntityType.STUDENT, "S1", {"name": "Asha"})

        found = asyncio.run(remote.query(EntityType.STUDENT))
        found[0].payload["name"] = "Mallory"

        assert remote.get(EntityType.STUDENT, "S1").payload == {"name": "Asha"}

    def test_offline_raises_unavailable(self):
        remote = MemoryRemoteStore(online=False)

        with pytest.raises(Unavailable):
            asyncio.run(remote.create(EntityType.STUDENT, {"name": "Asha"}))
        assert remote.calls == []

    def test_required_fields(self):
        remote = MemoryRemoteStore(required_fields={EntityType.STUDENT: ["name", "grade"]})

        with pytest.raises(ValidationFailed, match="grade"):
            asyncio.run(remote.create(EntityType.STUDENT, {"name": "Asha"}))
        assert remote.count(EntityType.STUDENT) == 0

    def test_missing_target(self):
        remote = MemoryRemoteStore()

        with pytest.raises(NotFound):
            asyncio.run(remote.update(EntityType.STUDENT, "S404", {"grade": "4"}))
        with pytest.raises(NotFound):
            asyncio.run(remote.delete(EntityType.STUDENT, "S404"))

    def test_update_merges_diff(self):
        remote = MemoryRemoteStore()
        remote.seed(EntityType.STUDENT, "S1", {"name": "Asha", "grade": "3"})

        asyncio.run(remote.update(EntityType.STUDENT, "S1", {"grade": "4"}))

        assert remote.get(EntityType.STUDENT, "S1").payload == {"name": "Asha", "grade": "4"}

    def test_fail_next(self):
        """Test a queued error fires once, then the store behaves normally."""
        remote = MemoryRemoteStore()
        remote.fail_next(Unavailable("blip"))

        with pytest.raises(Unavailable):
            asyncio.run(remote.create(EntityType.STUDENT, {"name": "Asha"}))
        asyncio.run(remote.create(EntityType.STUDENT, {"name": "Asha"}))

        assert remote.count(EntityType.STUDENT) == 1


class TestHttpRemoteStore:
    """Test the httpx client against a mock transport."""

    def test_create_posts_to_collection(self):
        seen = []

        def handler(request):
            seen.append(request)
            body = json.loads(request.content)
            return httpx.Response(201, json={"id": "abc", "created_at": "2026-01-01T00:00:00.000000Z", **body})

        record = _run_http(handler, lambda r: r.create(EntityType.STUDENT, {"name": "Asha"}))

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/collections/students"
        assert record.id == "abc"
        assert record.payload == {"name": "Asha"}
        assert record.created_at == "2026-01-01T00:00:00.000000Z"

    def test_update_and_delete_routes(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(204)

        async def calls(remote):
            await remote.update(EntityType.MARK, "m1", {"score": 9})
            await remote.delete(EntityType.MARK, "m1")

        _run_http(handler, calls)

        assert seen == [
            ("PATCH", "/collections/student_marks/m1"),
            ("DELETE", "/collections/student_marks/m1"),
        ]

    def test_query_sends_filter_and_limit(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"records": [{"id": "S1", "name": "Asha", "grade": "4"}]})

        found = _run_http(handler, lambda r: r.query(EntityType.STUDENT, {"grade": "4"}))

        params = seen[0].url.params
        assert params["grade"] == "4"
        assert params["limit"] == "50"
        assert [r.id for r in found] == ["S1"]
        assert found[0].payload == {"name": "Asha", "grade": "4"}

    def test_query_accepts_bare_list(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": 1}, {"no_id": True}])

        found = _run_http(handler, lambda r: r.query(EntityType.CONTENT))

        assert [r.id for r in found] == ["1"]

    def test_auth_header(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json=[])

        _run_http(handler, lambda r: r.query(EntityType.STUDENT), auth_token="secret")

        assert seen == ["Bearer secret"]

    @pytest.mark.parametrize("status,error", [
        (404, NotFound),
        (400, ValidationFailed),
        (422, ValidationFailed),
        (500, Unavailable),
        (503, Unavailable),
        (403, OfflineKitError),
    ])
    def test_status_mapping(self, status, error):
        def handler(request):
            return httpx.Response(status, json={"detail": "nope"})

        with pytest.raises(error) as exc_info:
            _run_http(handler, lambda r: r.update(EntityType.STUDENT, "S1", {"grade": "4"}))

        assert exc_info.value.status_code == status
        assert exc_info.value.response == {"detail": "nope"}

    def test_connect_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(Unavailable):
            _run_http(handler, lambda r: r.create(EntityType.STUDENT, {"name": "Asha"}))

    def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(Unavailable, match="timed out"):
            _run_http(handler, lambda r: r.query(EntityType.STUDENT))

    def test_create_without_id(self):
        def handler(request):
            return httpx.Response(201, json={"name": "Asha"})

        with pytest.raises(Unavailable):
            _run_http(handler, lambda r: r.create(EntityType.STUDENT, {"name": "Asha"}))

    def test_not_connected(self):
        remote = HttpRemoteStore("http://records.test")

        with pytest.raises(OfflineKitError, match="not connected"):
            asyncio.run(remote.query(EntityType.STUDENT))
