import asyncio

import pytest

from recommender.core.constants import BEHAVIORAL_REASON, EDITORIAL_REASON, KEYWORD_REASON
from recommender.core.exceptions import Forbidden, RateLimited, Unauthenticated
from recommender.models.session import Interaction, SubjectProfile
from recommender.services.rate_limiter import FixedWindowRateLimiter
from recommender.services.recommendation_cache import InMemoryRecommendationCache
from recommender.services.signals import (
    EditorialBoostCollector,
    KeywordCollector,
    SemanticCollector,
    TrackAffinityCollector,
)
from tests.conftest import AI_TRACK, CONFERENCE_ID, DESIGN_TRACK, TOKEN, USER_ID, make_session
from tests.fakes import (
    BrokenCollector,
    FakeConferenceStore,
    FakeEmbeddingProvider,
    FakeExplanationProvider,
    SlowCollector,
)

CALLER = "203.0.113.7"


def _collector_calls(service) -> int:
    return sum(c.calls for c in service.collectors)


async def test_end_to_end_keyword_and_editorial(scenario_store, build_service):
    service = build_service(scenario_store, explanation_provider=FakeExplanationProvider(fail=True))

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert response.cached is False
    assert [(r.itemId, r.score) for r in response.recommendations] == [("b", 45), ("a", 25)]
    b, a = response.recommendations
    assert b.signalType == "interest_match"
    assert b.track == "Design" and b.trackColor == "#ec4899" and b.room == "Hall A"
    assert a.reason == KEYWORD_REASON.format(tag="AI")
    assert b.reason == KEYWORD_REASON.format(tag="design")


async def test_second_call_is_served_from_cache(scenario_store, build_service):
    service = build_service(scenario_store)

    first = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    calls_after_first = _collector_calls(service)
    second = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert second.cached is True
    assert second.recommendations == first.recommendations
    assert _collector_calls(service) == calls_after_first
    assert scenario_store.calls["get_upcoming_sessions"] == 1


async def test_force_refresh_bypasses_and_replaces_cache(scenario_store, build_service):
    service = build_service(scenario_store)
    await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    scenario_store.sessions.append(make_session("d", "AI for design leads", starts_in_minutes=15))
    refreshed = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID, force_refresh=True)
    cached = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert refreshed.cached is False
    assert refreshed.recommendations[0].itemId == "d"
    assert cached.cached is True
    assert cached.recommendations == refreshed.recommendations


async def test_expired_entry_is_recomputed(scenario_store, build_service, clock):
    service = build_service(scenario_store)
    await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    clock.advance(minutes=61)
    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert response.cached is False
    assert scenario_store.calls["get_upcoming_sessions"] == 2


async def test_every_item_has_a_reason_when_explanations_fail(build_service):
    store = FakeConferenceStore(
        sessions=[
            make_session("kw", "AI ethics", track=AI_TRACK),
            make_session("beh", "Color theory", track=DESIGN_TRACK),
            make_session("key", "Opening", session_type="keynote"),
        ],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["ai"])},
        interactions={USER_ID: [Interaction(session_id="old", interaction_type="viewed", track_id=DESIGN_TRACK.id)]},
        members={(USER_ID, CONFERENCE_ID)},
    )
    service = build_service(store, explanation_provider=FakeExplanationProvider(fail=True))

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    reasons = {r.itemId: r.reason for r in response.recommendations}
    assert reasons == {
        "kw": KEYWORD_REASON.format(tag="ai"),
        "beh": BEHAVIORAL_REASON,
        "key": EDITORIAL_REASON,
    }
    types = {r.itemId: r.signalType for r in response.recommendations}
    assert types == {"kw": "interest_match", "beh": "similar_attendees", "key": "popular"}


async def test_explanations_decorate_top_results(scenario_store, build_service):
    provider = FakeExplanationProvider()
    service = build_service(scenario_store, explanation_provider=provider)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert provider.requests == [["b", "a"]]
    assert response.recommendations[0].reason == "Because you like The Future of design Systems"


async def test_saved_sessions_never_returned(scenario_store, build_service):
    scenario_store.saved[USER_ID] = {"b"}
    service = build_service(scenario_store)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert [r.itemId for r in response.recommendations] == ["a"]


async def test_semantic_signal_replaces_keyword_fallback(build_service):
    store = FakeConferenceStore(
        sessions=[
            make_session("near", "Vector databases", embedding=[0.9, 0.1, 0.0]),
            make_session("far", "Catering", embedding=[0.0, 0.0, 1.0]),
            make_session("ai-title", "AI without embedding"),
        ],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI"], title="Data scientist")},
        members={(USER_ID, CONFERENCE_ID)},
    )
    embedder = FakeEmbeddingProvider(vector=[1.0, 0.0, 0.0])
    service = build_service(store, embedding_provider=embedder)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    await service.aclose()

    # Keyword matching is off once the semantic signal is active
    assert [r.itemId for r in response.recommendations] == ["near"]
    assert response.recommendations[0].score == 99
    assert embedder.calls == ["AI. Role: Data scientist"]
    assert store.saved_embeddings[USER_ID] == [1.0, 0.0, 0.0]


async def test_mismatched_embedding_dimensions_fall_back_to_keywords(build_service):
    store = FakeConferenceStore(
        sessions=[make_session("a", "Practical AI", embedding=[0.1, 0.2, 0.3, 0.4])],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI"])},
        members={(USER_ID, CONFERENCE_ID)},
    )
    service = build_service(store, embedding_provider=FakeEmbeddingProvider(vector=[1.0, 0.0, 0.0]))

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    await service.aclose()

    assert [(r.itemId, r.score) for r in response.recommendations] == [("a", 25)]
    assert response.recommendations[0].signalType == "interest_match"


async def test_cached_profile_embedding_skips_provider(build_service):
    store = FakeConferenceStore(
        sessions=[make_session("near", "Vector databases", embedding=[1.0, 0.0])],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI"], interest_embedding=[1.0, 0.0])},
        members={(USER_ID, CONFERENCE_ID)},
    )
    embedder = FakeEmbeddingProvider()
    service = build_service(store, embedding_provider=embedder)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert embedder.calls == []
    assert response.recommendations[0].score == 100
    assert "save_profile_embedding" not in store.calls


async def test_embedding_failure_falls_back_to_keywords(scenario_store, build_service):
    service = build_service(scenario_store, embedding_provider=FakeEmbeddingProvider(fail=True))

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert [(r.itemId, r.score) for r in response.recommendations] == [("b", 45), ("a", 25)]
    assert "save_profile_embedding" not in scenario_store.calls


async def test_embedding_write_back_failure_is_swallowed(build_service):
    store = FakeConferenceStore(
        sessions=[make_session("near", "Vector databases", embedding=[1.0, 0.0, 0.0])],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI"])},
        members={(USER_ID, CONFERENCE_ID)},
    )
    store.fail.add("save_profile_embedding")
    service = build_service(store, embedding_provider=FakeEmbeddingProvider())

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    await service.aclose()

    assert [r.itemId for r in response.recommendations] == ["near"]


async def test_slow_and_broken_collectors_degrade(scenario_store, build_service):
    collectors = [
        SemanticCollector(),
        SlowCollector(KeywordCollector(), delay=5.0),
        TrackAffinityCollector(),
        BrokenCollector(EditorialBoostCollector()),
    ]
    service = build_service(scenario_store, collectors=collectors, collector_timeout=0.05)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert response.recommendations == []
    assert response.cached is False


async def test_store_outage_is_an_empty_result(scenario_store, build_service):
    scenario_store.fail.add("get_upcoming_sessions")
    service = build_service(scenario_store)

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert response.recommendations == []


async def test_history_outage_is_not_cached(scenario_store, build_service):
    scenario_store.fail.add("get_history")
    service = build_service(scenario_store)

    first = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    second = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert [r.itemId for r in first.recommendations] == ["b", "a"]
    assert second.cached is False


async def test_cache_write_failure_still_responds(scenario_store, build_service):
    class FailingCache(InMemoryRecommendationCache):
        async def put(self, entry):
            raise ConnectionError("cache down")

    service = build_service(scenario_store, cache=FailingCache())

    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert [r.itemId for r in response.recommendations] == ["b", "a"]


async def test_missing_token_is_rejected(scenario_store, build_service):
    service = build_service(scenario_store)

    with pytest.raises(Unauthenticated):
        await service.get_recommendations(CALLER, None, CONFERENCE_ID)
    with pytest.raises(Unauthenticated):
        await service.get_recommendations(CALLER, "bogus", CONFERENCE_ID)
    assert "get_upcoming_sessions" not in scenario_store.calls


async def test_non_member_is_forbidden_before_any_ranking(scenario_store, build_service):
    scenario_store.members.clear()
    service = build_service(scenario_store)

    with pytest.raises(Forbidden):
        await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    assert _collector_calls(service) == 0
    assert "get_profile" not in scenario_store.calls


async def test_rate_limit_applies_before_authentication(scenario_store, build_service):
    service = build_service(scenario_store, rate_limiter=FixedWindowRateLimiter(max_requests=2, window_seconds=60))

    with pytest.raises(Unauthenticated):
        await service.get_recommendations(CALLER, None, CONFERENCE_ID)
    await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    with pytest.raises(RateLimited):
        await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)
    assert scenario_store.calls["is_member"] == 1


async def test_recording_interaction_invalidates_cache(scenario_store, build_service):
    service = build_service(scenario_store)
    await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    await service.record_interaction(CALLER, TOKEN, CONFERENCE_ID, "b", "saved")
    scenario_store.saved[USER_ID] = {"b"}
    response = await service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID)

    assert scenario_store.recorded == [(USER_ID, "b", "saved", None, None)]
    assert response.cached is False
    assert [r.itemId for r in response.recommendations] == ["a"]


async def test_update_interests_clears_embedding(build_service):
    store = FakeConferenceStore(
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI"], interest_embedding=[1.0, 0.0])},
    )
    service = build_service(store)

    interests = await service.update_interests(CALLER, TOKEN, [" Rust ", "rust", "", "Go"])

    assert interests == ["Rust", "rust", "Go"]
    assert store.profiles[USER_ID].interest_embedding is None


async def test_parent_cancellation_aborts_collectors(scenario_store, build_service):
    collectors = [SlowCollector(KeywordCollector(), delay=5.0), EditorialBoostCollector()]
    service = build_service(scenario_store, collectors=collectors, collector_timeout=10.0)

    task = asyncio.ensure_future(service.get_recommendations(CALLER, TOKEN, CONFERENCE_ID))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert await service.cache.get(USER_ID, CONFERENCE_ID) is None
