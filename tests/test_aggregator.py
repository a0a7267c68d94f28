import asyncio

import pytest

from aggregator import Aggregator, ProblemFilters
from fakes import ALFA_SOLVED, FAISAL_BUNDLE, NOW, FakeClock, FakeResponse, FakeSession, RecordingGate, alfa_stub, faisal_stub
from providers.cache import DayCache
from providers.deadline import Deadline
from providers.errors import AllProvidersExhausted, NotFound, ProviderTimeout, RateLimited
from providers.failover import FailoverRouter
from providers.faisal import FaisalClient
from providers.rate_gate import RateGate
from stats.models import SkillLevel, SyncResult


def _aggregator(alfa=None, faisal=None, **kwargs):
    alfa = alfa or alfa_stub()
    faisal = faisal or faisal_stub()
    router = FailoverRouter([alfa, faisal], gate=RateGate(0), default_order=["alfa", "faisal"])
    kwargs.setdefault("day_cache", DayCache(today=lambda: "2024-01-10", enabled=True))
    return Aggregator(router, now=lambda: NOW, **kwargs)


def test_comprehensive_sync_assembles_everything():
    result = asyncio.run(_aggregator().get_comprehensive_user_data(" neo "))
    assert isinstance(result, SyncResult)
    assert result.profile.display_name == "Thomas Anderson"
    assert result.solved_stats.total_solved == 120
    assert len(result.submissions) == 3
    assert result.streak == 3
    assert result.skill_level is SkillLevel.INTERMEDIATE
    assert result.contest_info.attended == 12
    assert result.badges[0].id == "4593"
    assert result.fetched_at == NOW
    assert not result.is_degraded


def test_submission_limit_is_forwarded():
    alfa = alfa_stub()
    asyncio.run(_aggregator(alfa, submission_limit=2).get_comprehensive_user_data("neo"))
    (_, params), = alfa.calls_for("submissions")
    assert params["limit"] == 2


def test_contest_failure_degrades_instead_of_failing():
    alfa = alfa_stub(contest=ProviderTimeout("slow", "alfa", "contest"))
    result = asyncio.run(_aggregator(alfa).get_comprehensive_user_data("neo"))
    assert result.contest_info is None
    assert result.degraded["contest_info"] == "all_providers_exhausted"
    assert result.streak == 3


def test_unexpected_contest_exception_is_contained():
    alfa = alfa_stub(contest=RuntimeError("mirror returned garbage"))
    result = asyncio.run(_aggregator(alfa).get_comprehensive_user_data("neo"))
    assert result.contest_info is None
    assert result.degraded["contest_info"] == "unexpected"


def test_missing_contest_data_is_not_degraded():
    alfa = alfa_stub(contest={"contestParticipation": []})
    result = asyncio.run(_aggregator(alfa).get_comprehensive_user_data("neo"))
    assert result.contest_info is None
    assert "contest_info" not in result.degraded


def test_badge_failure_degrades():
    alfa = alfa_stub(badges=RateLimited("429", "alfa", "badges"))
    result = asyncio.run(_aggregator(alfa).get_comprehensive_user_data("neo"))
    assert result.badges == ()
    assert "badges" in result.degraded


def test_required_fragment_exhaustion_fails_whole_sync():
    alfa = alfa_stub(solved_stats=RateLimited("429", "alfa", "solved_stats"))
    faisal = faisal_stub(solved_stats=ProviderTimeout("slow", "faisal", "solved_stats"))
    with pytest.raises(AllProvidersExhausted):
        asyncio.run(_aggregator(alfa, faisal).get_comprehensive_user_data("neo"))
    assert alfa.calls_for("contest") == []


def test_required_fragment_falls_back_to_secondary():
    alfa = alfa_stub(calendar=RateLimited("429", "alfa", "calendar"))
    result = asyncio.run(_aggregator(alfa).get_comprehensive_user_data("neo"))
    assert result.streak == 3
    assert result.calendar.total_active_days is None


def test_unknown_user_propagates_not_found():
    alfa = alfa_stub(profile=NotFound("HTTP 404", "alfa", "profile"))
    with pytest.raises(NotFound):
        asyncio.run(_aggregator(alfa).get_comprehensive_user_data("ghost"))


def test_verify_username():
    assert asyncio.run(_aggregator().verify_username("neo")) is True
    missing = alfa_stub(profile=NotFound("gone", "alfa", "profile"))
    assert asyncio.run(_aggregator(missing).verify_username("ghost")) is False
    assert asyncio.run(_aggregator().verify_username("   ")) is False


def test_verify_username_uses_fallback_and_never_raises():
    alfa = alfa_stub(profile=RateLimited("429", "alfa", "profile"))
    assert asyncio.run(_aggregator(alfa).verify_username("neo")) is True

    broken = faisal_stub(profile=ProviderTimeout("slow", "faisal", "profile"))
    assert asyncio.run(_aggregator(alfa, broken).verify_username("neo")) is False

    expired = Deadline(0.0, clock=lambda: 1.0)
    assert asyncio.run(_aggregator().verify_username("neo", deadline=expired)) is False


def test_daily_problem_is_cached_for_the_day():
    alfa = alfa_stub()
    agg = _aggregator(alfa)

    async def run():
        first = await agg.get_daily_problem()
        second = await agg.get_daily_problem()
        return first, second

    first, second = asyncio.run(run())
    assert first is second
    assert len(alfa.calls_for("daily_problem")) == 1


def test_get_problems_forwards_filters():
    alfa = alfa_stub()
    page = asyncio.run(_aggregator(alfa).get_problems(ProblemFilters(limit=2, tags=("array",), difficulty="easy")))
    assert page.count == 2
    (_, params), = alfa.calls_for("problems")
    assert params == {"limit": 2, "skip": 0, "tags": ("array",), "difficulty": "EASY"}


@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"skip": -1}, {"difficulty": "insane"}])
def test_problem_filters_validation(kwargs):
    with pytest.raises(ValueError):
        ProblemFilters(**kwargs)


def test_accepted_submissions():
    subs = asyncio.run(_aggregator().get_accepted_submissions("neo", limit=1))
    assert len(subs) == 1


def test_sync_all_collects_outcomes():
    alfa = alfa_stub()
    agg = _aggregator(alfa)
    original = alfa.script["profile"]

    async def run():
        outcomes = []
        outcomes.extend(await agg.sync_all(["neo"]))
        alfa.script["profile"] = NotFound("gone", "alfa", "profile")
        outcomes.extend(await agg.sync_all(["ghost"]))
        alfa.script["profile"] = original
        return outcomes

    ok, missing = asyncio.run(run())
    assert ok.ok and ok.result.streak == 3
    assert not missing.ok
    assert missing.error_kind == "not_found"


def test_result_is_json_ready():
    result = asyncio.run(_aggregator().get_comprehensive_user_data("neo"))
    data = result.to_dict()
    assert data["skill_level"] == "intermediate"
    assert data["fetched_at"] == NOW.isoformat()
    assert data["profile"]["global_rank"] == 12345
    assert data["submissions"][0]["status"] == "Wrong Answer"
    assert data["calendar"]["activity_by_day"][str(19732)] == 1
    assert data["degraded"] == {}


def test_sync_all_survives_non_finite_counts():
    alfa = alfa_stub(solved_stats=dict(ALFA_SOLVED, hardSolved=float("inf")))
    outcomes = asyncio.run(_aggregator(alfa).sync_all(["neo", "trinity"]))
    assert len(outcomes) == 2
    assert all(o.ok for o in outcomes)
    assert outcomes[0].result.solved_stats.hard_solved == 0


def _gated_aggregator(clock, alfa, faisal=None):
    gate = RateGate(1000, clock=clock, sleep=clock.sleep)
    router = FailoverRouter([alfa, faisal or faisal_stub()], gate=gate, default_order=["alfa", "faisal"])
    return Aggregator(router, now=lambda: NOW), gate


def test_failed_sync_leaves_nothing_queued_on_the_gate():
    clock = FakeClock(park=True)
    alfa = alfa_stub(profile=NotFound("HTTP 404", "alfa", "profile"))
    faisal = faisal_stub()
    agg, gate = _gated_aggregator(clock, alfa, faisal)

    async def run():
        with pytest.raises(NotFound):
            await agg.get_comprehensive_user_data("ghost")
        for _ in range(5):
            await asyncio.sleep(0)

    asyncio.run(run())
    assert [op for op, _ in alfa.calls] == ["profile"]
    assert faisal.calls == []
    # the sibling that was waiting for the next slot was cancelled before it got one
    assert gate.last_grant("alfa") == 100.0
    assert clock.sleeps == [pytest.approx(1.0)]


def test_cancelled_sync_releases_the_gate():
    clock = FakeClock(park=True)
    alfa = alfa_stub()
    agg, gate = _gated_aggregator(clock, alfa)

    async def run():
        task = asyncio.ensure_future(agg.get_comprehensive_user_data("neo"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert clock.sleeps, "a sibling fetch should be waiting on the gate"
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        clock.park = False
        clock.now += 5
        await asyncio.wait_for(gate.acquire("alfa"), timeout=1)

    asyncio.run(run())
    assert [op for op, _ in alfa.calls] == ["profile"]
    assert gate.last_grant("alfa") == 105.0
    assert len(clock.sleeps) == 1


def test_fallback_sync_fetches_the_faisal_bundle_once():
    required = ("profile", "solved_stats", "submissions", "calendar")
    alfa = alfa_stub(**{op: RateLimited("429", "alfa", op) for op in required})
    session = FakeSession({"/neo": FakeResponse(200, FAISAL_BUNDLE)})
    faisal = FaisalClient(session=session, base_url="https://mirror.test")
    gate = RecordingGate()
    router = FailoverRouter([alfa, faisal], gate=gate, default_order=["alfa", "faisal"])

    result = asyncio.run(Aggregator(router, now=lambda: NOW).get_comprehensive_user_data("neo"))
    assert result.profile.display_name == "neo"
    assert result.solved_stats.total_solved == 120
    assert len(session.calls) == 1
    assert gate.acquired.count("faisal") == 1
