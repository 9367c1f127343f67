import json

import httpx
import pytest

from recommender.services.supabase import SupabaseAuthService, SupabaseClient, SupabaseConferenceStore
from recommender.services.supabase.store import parse_vector, session_from_row
from tests.conftest import CONFERENCE_ID, NOW, USER_ID

SESSION_ROW = {
    "id": "s-1",
    "title": "Shipping LLM features",
    "description": None,
    "start_time": "2026-05-01T10:00:00+00:00",
    "end_time": None,
    "session_type": "keynote",
    "is_featured": None,
    "topics": ["llm", "product"],
    "difficulty": "intermediate",
    "embedding": "[0.5,0.25]",
    "track": {"id": "t-1", "name": "AI", "color": "#111111"},
    "room": {"name": "Main Stage"},
}


def _client_with(handler) -> SupabaseClient:
    client = SupabaseClient(url="https://example.supabase.co", service_key="service-key", max_retries=1)
    client._client = httpx.AsyncClient(
        base_url=client.base_url, headers=client.headers, transport=httpx.MockTransport(handler)
    )
    return client


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("[1,2.5]", [1.0, 2.5]),
        ([0.1, 0.2], [0.1, 0.2]),
        (None, None),
        ("not a vector", None),
        ([], None),
    ],
)
def test_parse_vector(raw, expected):
    assert parse_vector(raw) == expected


def test_session_from_row():
    session = session_from_row(SESSION_ROW)

    assert session.description == ""
    assert session.room == "Main Stage"
    assert session.track.color == "#111111"
    assert session.embedding == [0.5, 0.25]
    assert session.is_editorial


async def test_upcoming_sessions_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json=[SESSION_ROW, {"id": "broken"}])

    store = SupabaseConferenceStore(_client_with(handler))
    sessions = await store.get_upcoming_sessions(CONFERENCE_ID, NOW)

    assert [s.id for s in sessions] == ["s-1"]
    assert seen["path"] == "/rest/v1/sessions"
    assert seen["params"]["conference_id"] == f"eq.{CONFERENCE_ID}"
    assert seen["params"]["start_time"] == f"gte.{NOW.isoformat()}"
    assert seen["apikey"] == "service-key"


async def test_history_joins_track_ids():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/session_interactions"):
            return httpx.Response(
                200,
                json=[
                    {"session_id": "s-1", "interaction_type": "viewed", "session": {"track_id": "t-1"}},
                    {"session_id": "s-2", "interaction_type": "saved", "session": None},
                ],
            )
        return httpx.Response(200, json=[{"session_id": "s-3"}])

    history = await SupabaseConferenceStore(_client_with(handler)).get_history(USER_ID)

    assert [i.track_id for i in history.interactions] == ["t-1", None]
    assert history.saved_session_ids == {"s-3"}
    assert history.consumed_session_ids == {"s-2", "s-3"}


async def test_update_interests_clears_embedding():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(204)

    await SupabaseConferenceStore(_client_with(handler)).update_interests(USER_ID, ["AI"])

    assert captured["method"] == "PATCH"
    assert captured["body"] == {"interests": ["AI"], "interest_embedding": None, "embedding_updated_at": None}


async def test_auth_resolves_user_id():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers["Authorization"] == "Bearer good":
            return httpx.Response(200, json={"id": USER_ID})
        return httpx.Response(401, json={"msg": "invalid JWT"})

    auth = SupabaseAuthService(_client_with(handler))

    assert await auth.get_user_id("good") == USER_ID
    assert await auth.get_user_id("bad") is None


async def test_auth_server_error_propagates():
    auth = SupabaseAuthService(_client_with(lambda request: httpx.Response(503)))

    with pytest.raises(httpx.HTTPStatusError):
        await auth.get_user_id("any")
