"""Tests for study-session orchestration."""

from datetime import timedelta

import pytest

from wordmaster.config.settings import Settings
from wordmaster.v1.core.exceptions import ConcurrentUpdateError, StateNotFoundError
from wordmaster.v1.review.session import (
    SessionCoordinator,
    SessionType,
    StudyResult,
    infer_quality,
)
from wordmaster.v1.review.sm2 import MasteryLevel, ReviewQuality, SM2Scheduler
from wordmaster.v1.review.store import InMemoryScheduleStore, SQLAlchemyScheduleStore, StudyType

ITEMS = [11, 12, 13, 14, 15]


class FlakyStore(InMemoryScheduleStore):
    """Rejects the next ``fail_puts`` writes as conflicts."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_puts = 0
        self.put_calls = 0

    async def put(self, state, event=None):
        self.put_calls += 1
        if self.fail_puts:
            self.fail_puts -= 1
            raise ConcurrentUpdateError(state.item_id, state.version)
        return await super().put(state, event)


class BrokenStore(InMemoryScheduleStore):
    async def put(self, state, event=None):
        raise RuntimeError("disk full")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(new_items_per_session=3, review_items_per_session=2, review_max_retries=3)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore({"cet4": ITEMS})


@pytest.fixture
def coordinator(store, test_settings, today) -> SessionCoordinator:
    return SessionCoordinator(store, SM2Scheduler(), test_settings, clock=lambda: today)


class TestInferQuality:
    @pytest.mark.parametrize(
        "known,duration,expected",
        [
            (False, 0, ReviewQuality.AGAIN),
            (False, 60, ReviewQuality.AGAIN),
            (True, 0, ReviewQuality.EASY),
            (True, 2, ReviewQuality.EASY),
            (True, 3, ReviewQuality.GOOD),
            (True, 9, ReviewQuality.GOOD),
            (True, 10, ReviewQuality.HARD),
            (True, 120, ReviewQuality.HARD),
        ],
    )
    def test_default_thresholds(self, known, duration, expected):
        assert infer_quality(known, duration) is expected

    def test_thresholds_come_from_settings(self, store, today):
        settings = Settings(easy_threshold_s=5, good_threshold_s=20)
        coordinator = SessionCoordinator(store, settings=settings, clock=lambda: today)

        assert coordinator.infer_quality(True, 4) is ReviewQuality.EASY
        assert coordinator.infer_quality(True, 15) is ReviewQuality.GOOD
        assert coordinator.infer_quality(True, 20) is ReviewQuality.HARD


class TestStartSession:
    async def test_new_session_uses_catalog_order(self, coordinator):
        session = await coordinator.start_session("cet4", SessionType.NEW)

        assert session.item_ids == ITEMS[:3]
        assert session.current_item_id() == ITEMS[0]
        assert session.total == 3
        assert session.progress == 0

    async def test_max_items_overrides_default(self, coordinator):
        session = await coordinator.start_session("cet4", SessionType.NEW, max_items=5)
        assert session.item_ids == ITEMS

    async def test_review_session_takes_due_items(self, coordinator, today):
        for item_id in ITEMS:
            await coordinator.initialize_item(item_id, "cet4")

        session = await coordinator.start_session("cet4", SessionType.REVIEW)
        assert session.item_ids == ITEMS[:2]

    async def test_empty_sessions(self, coordinator):
        review = await coordinator.start_session("cet4", SessionType.REVIEW)
        unknown = await coordinator.start_session("missing", SessionType.NEW)

        assert review.item_ids == []
        assert not review.has_next()
        assert review.current_item_id() is None
        assert unknown.item_ids == []


class TestInitializeItem:
    async def test_initialize_is_idempotent(self, coordinator, store, today):
        first = await coordinator.initialize_item(ITEMS[0], "cet4")
        second = await coordinator.initialize_item(ITEMS[0], "cet4")

        assert first == second
        assert first.version == 1
        assert first.next_review_date == today
        assert await store.query_never_scheduled("cet4") == ITEMS[1:]

    async def test_initialize_keeps_concurrent_record(self, coordinator, store, today):
        # Another writer stored the first state between our read and write
        scheduler = SM2Scheduler()
        original_get = store.get

        async def racing_get(item_id):
            state = await original_get(item_id)
            if state is None and store.put_calls == 0:
                await InMemoryScheduleStore.put(store, scheduler.initialize(item_id, "cet4", today))
            return state

        store.get = racing_get
        state = await coordinator.initialize_item(ITEMS[0], "cet4")

        assert state.version == 1
        assert state.repetition_count == 0


class TestReviewItem:
    async def test_review_updates_stored_state(self, coordinator, store, today):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        state = await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

        assert state.repetition_count == 1
        assert state.next_review_date == today + timedelta(days=1)
        assert await store.get(ITEMS[0]) == state

    async def test_review_without_state(self, coordinator):
        with pytest.raises(StateNotFoundError):
            await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

    async def test_conflict_is_retried(self, coordinator, store):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        store.fail_puts = 2

        state = await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

        assert state.repetition_count == 1
        assert state.version == 2

    async def test_conflict_gives_up_after_max_retries(self, coordinator, store):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        store.fail_puts = 3
        calls_before = store.put_calls

        with pytest.raises(ConcurrentUpdateError):
            await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

        assert store.put_calls - calls_before == 3
        assert (await store.get(ITEMS[0])).repetition_count == 0

    async def test_learn_item(self, coordinator):
        quality, state = await coordinator.learn_item(ITEMS[0], "cet4", known=True)
        assert quality is ReviewQuality.GOOD
        assert state.repetition_count == 1
        assert state.mastery_level == MasteryLevel.LEARNING

        quality, state = await coordinator.learn_item(ITEMS[1], "cet4", known=False)
        assert quality is ReviewQuality.AGAIN
        assert state.repetition_count == 0
        assert state.easiness_factor == pytest.approx(1.7)


class TestSessionFlow:
    async def test_new_session_walkthrough(self, coordinator, store, today):
        session = await coordinator.start_session("cet4", SessionType.NEW)

        outcomes = []
        for known in (True, False, True):
            item_id = session.current_item_id()
            outcomes.append(
                await coordinator.record_and_next(session, StudyResult(item_id, known, duration_s=4))
            )

        assert not session.has_next()
        assert session.progress == 3
        assert [o.quality for o in outcomes] == [
            ReviewQuality.GOOD,
            ReviewQuality.AGAIN,
            ReviewQuality.GOOD,
        ]
        assert await store.query_never_scheduled("cet4") == ITEMS[3:]

        summary = await coordinator.end_session(session)
        assert summary.total_items == 3
        assert summary.learned_items == 3
        assert summary.known_items == 2
        assert summary.unknown_items == 1
        assert summary.total_duration_s == 12

    async def test_review_session_infers_quality(self, store, test_settings, today):
        learn = SessionCoordinator(store, settings=test_settings, clock=lambda: today)
        for item_id in ITEMS[:2]:
            await learn.learn_item(item_id, "cet4", known=True)

        tomorrow = today + timedelta(days=1)
        coordinator = SessionCoordinator(store, settings=test_settings, clock=lambda: tomorrow)
        session = await coordinator.start_session("cet4", SessionType.REVIEW)
        assert session.item_ids == ITEMS[:2]

        fast = await coordinator.record_and_next(session, StudyResult(ITEMS[0], True, 1))
        slow = await coordinator.record_and_next(session, StudyResult(ITEMS[1], True, 30))

        assert fast.quality is ReviewQuality.EASY
        assert slow.quality is ReviewQuality.HARD
        assert fast.state.interval == slow.state.interval == 6
        assert fast.state.easiness_factor > slow.state.easiness_factor

    async def test_failed_write_does_not_advance(self, test_settings, today):
        coordinator = SessionCoordinator(
            BrokenStore({"cet4": ITEMS}), settings=test_settings, clock=lambda: today
        )
        session = await coordinator.start_session("cet4", SessionType.NEW)

        with pytest.raises(RuntimeError):
            await coordinator.record_and_next(session, StudyResult(ITEMS[0], True))

        assert session.current_item_id() == ITEMS[0]
        assert session.outcomes == []

    async def test_empty_session_summary(self, coordinator):
        session = await coordinator.start_session("cet4", SessionType.REVIEW)
        summary = await coordinator.end_session(session)

        assert summary.total_items == 0
        assert summary.total_duration_s == 0


class TestWithDatabase:
    async def test_learning_against_sqlalchemy_store(self, db_session, cet4_items, today):
        coordinator = SessionCoordinator(SQLAlchemyScheduleStore(db_session), clock=lambda: today)

        session = await coordinator.start_session("cet4", SessionType.NEW, max_items=2)
        assert session.item_ids == cet4_items[:2]

        while session.has_next():
            await coordinator.record_and_next(session, StudyResult(session.current_item_id(), True))

        store = coordinator.store
        assert await store.query_never_scheduled("cet4") == cet4_items[2:]
        assert await store.query_due("cet4", today + timedelta(days=1)) == cet4_items[:2]

    async def test_history_is_stored_with_schedule(self, db_session, cet4_items, today):
        coordinator = SessionCoordinator(SQLAlchemyScheduleStore(db_session), clock=lambda: today)
        session = await coordinator.start_session("cet4", SessionType.NEW, max_items=2)

        await coordinator.record_and_next(session, StudyResult(cet4_items[0], True, 2))
        await coordinator.record_and_next(session, StudyResult(cet4_items[1], False, 8))

        events = await coordinator.store.list_events(session_id=session.session_id)
        assert [e.item_id for e in events] == cet4_items[:2]
        assert [e.known for e in events] == [True, False]

        summary = await coordinator.end_session(session)
        assert summary.total_items == 2
        assert summary.learned_items == 2
        assert summary.unknown_items == 1
        assert summary.total_duration_s == 10


class TestStudyHistory:
    async def test_event_per_review(self, coordinator, store, today):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        await coordinator.review_item(
            ITEMS[0], "cet4", ReviewQuality.HARD, duration_s=12, session_id="s-1"
        )
        await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.AGAIN)

        first, second = await store.list_events()
        assert first.item_id == ITEMS[0]
        assert first.study_type == StudyType.REVIEW
        assert first.quality is ReviewQuality.HARD
        assert first.known is True
        assert first.duration_s == 12
        assert first.session_id == "s-1"
        assert first.studied_on == today
        assert second.known is False
        assert second.session_id is None

    async def test_initialize_writes_no_event(self, coordinator, store):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        assert await store.list_events() == []

    async def test_learn_event_type(self, coordinator, store):
        await coordinator.learn_item(ITEMS[0], "cet4", known=False, duration_s=5)

        (event,) = await store.list_events()
        assert event.study_type == StudyType.LEARN
        assert event.known is False
        assert event.quality is ReviewQuality.AGAIN

    async def test_retried_review_stores_one_event(self, coordinator, store):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        store.fail_puts = 2

        await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

        assert len(await store.list_events()) == 1

    async def test_failed_review_stores_no_event(self, coordinator, store):
        await coordinator.initialize_item(ITEMS[0], "cet4")
        store.fail_puts = 3

        with pytest.raises(ConcurrentUpdateError):
            await coordinator.review_item(ITEMS[0], "cet4", ReviewQuality.GOOD)

        assert await store.list_events() == []

    async def test_broken_store_keeps_no_history(self, test_settings, today):
        store = BrokenStore({"cet4": ITEMS})
        coordinator = SessionCoordinator(store, settings=test_settings, clock=lambda: today)
        session = await coordinator.start_session("cet4", SessionType.NEW)

        with pytest.raises(RuntimeError):
            await coordinator.record_and_next(session, StudyResult(ITEMS[0], True))

        assert await store.list_events() == []
        assert (await coordinator.end_session(session)).total_items == 0

    async def test_summarize_by_collection_and_day(self, store, test_settings, today):
        store.add_items("gre", [21, 22])
        monday = SessionCoordinator(store, settings=test_settings, clock=lambda: today)
        await monday.learn_item(ITEMS[0], "cet4", known=True, duration_s=3)
        await monday.learn_item(21, "gre", known=True, duration_s=4)

        tomorrow = today + timedelta(days=1)
        tuesday = SessionCoordinator(store, settings=test_settings, clock=lambda: tomorrow)
        await tuesday.review_item(ITEMS[0], "cet4", ReviewQuality.AGAIN, duration_s=9)

        cet4_today = await monday.summarize(collection_id="cet4", studied_on=today)
        assert cet4_today.total_items == 1
        assert cet4_today.learned_items == 1
        assert cet4_today.total_duration_s == 3

        cet4_tomorrow = await monday.summarize(collection_id="cet4", studied_on=tomorrow)
        assert cet4_tomorrow.total_items == 1
        assert cet4_tomorrow.learned_items == 0
        assert cet4_tomorrow.unknown_items == 1

        everything = await monday.summarize()
        assert everything.total_items == 3
        assert everything.total_duration_s == 16

    async def test_summary_survives_a_new_coordinator(self, store, test_settings, today):
        first = SessionCoordinator(store, settings=test_settings, clock=lambda: today)
        session = await first.start_session("cet4", SessionType.NEW, max_items=2)
        while session.has_next():
            await first.record_and_next(session, StudyResult(session.current_item_id(), True, 4))

        second = SessionCoordinator(store, settings=test_settings, clock=lambda: today)
        summary = await second.end_session(session)

        assert summary.total_items == 2
        assert summary.known_items == 2
