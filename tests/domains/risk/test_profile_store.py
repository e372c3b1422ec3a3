"""Tests for lazy profile construction and concurrent profile updates."""

import asyncio
import math
import statistics

import pytest

from src.domains.risk.geo import GeoResolver
from src.domains.risk.profiles import ProfileStore
from tests.fakes import InMemoryTransactionHistory, make_context, make_record, paid_history


@pytest.fixture
def store_factory(config):
    def _make(records=()):
        history = InMemoryTransactionHistory(list(records))
        return ProfileStore(history, GeoResolver("KE", {"102.": "UG"}), config), history

    return _make


class TestProfileStore:
    @pytest.mark.asyncio
    async def test_no_history_returns_none_and_is_not_cached(self, store_factory):
        store, history = store_factory()
        assert await store.get("user-1") is None
        assert await store.get("user-1") is None
        assert history.paid_queries == 2
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_builds_from_paid_history(self, store_factory):
        amounts = (2000, 2500, 3000, 2500, 2000, 3000)
        store, _ = store_factory(paid_history(amounts=amounts))
        profile = await store.get("user-1")

        assert profile.transaction_count == 6
        assert profile.average_amount == pytest.approx(2500.0)
        assert profile.standard_deviation == pytest.approx(statistics.pstdev(amounts))
        assert profile.known_devices == {"device-a"}
        assert profile.preferred_session_types == {"individual"}
        assert profile.known_locations == {"KE"}

    @pytest.mark.asyncio
    async def test_only_paid_records_count(self, store_factory):
        records = paid_history() + [
            make_record(session_id="failed", amount=90000.0, payment_status="failed")
        ]
        store, _ = store_factory(records)
        profile = await store.get("user-1")
        assert profile.transaction_count == 6

    @pytest.mark.asyncio
    async def test_history_capped_at_most_recent_fifty(self, store_factory):
        records = [
            make_record(session_id=f"s-{i}", amount=float(100 + i))
            for i in range(60)
        ]
        store, _ = store_factory(records)
        profile = await store.get("user-1")
        assert profile.transaction_count == 50

    @pytest.mark.asyncio
    async def test_built_once_then_cached(self, store_factory):
        store, history = store_factory(paid_history())
        await store.get("user-1")
        await store.get("user-1")
        assert history.paid_queries == 1

    @pytest.mark.asyncio
    async def test_get_returns_a_snapshot(self, store_factory):
        store, _ = store_factory(paid_history())
        snapshot = await store.get("user-1")
        snapshot.known_devices.add("device-x")
        snapshot.average_amount = 0.0

        fresh = await store.get("user-1")
        assert fresh.known_devices == {"device-a"}
        assert fresh.average_amount == pytest.approx(2500.0)

    @pytest.mark.asyncio
    async def test_record_creates_profile_for_new_user(self, store_factory):
        store, _ = store_factory()
        profile = await store.record_transaction(
            make_context(amount="1200", ip_address="102.1.1.1", session_type="group")
        )
        assert profile.transaction_count == 1
        assert profile.average_amount == pytest.approx(1200.0)
        assert profile.standard_deviation == 0.0
        assert profile.known_devices == {"device-a"}
        assert profile.preferred_session_types == {"group"}
        assert profile.known_locations == {"UG"}
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_record_updates_running_statistics(self, store_factory):
        store, _ = store_factory(paid_history())
        profile = await store.record_transaction(
            make_context(amount="9000", device_fingerprint="device-b")
        )

        expected = [2000, 2500, 3000, 2500, 2000, 3000, 9000]
        assert profile.transaction_count == 7
        assert profile.average_amount == pytest.approx(statistics.fmean(expected))
        assert profile.standard_deviation == pytest.approx(statistics.pstdev(expected))
        assert profile.known_devices == {"device-a", "device-b"}

    @pytest.mark.asyncio
    async def test_concurrent_records_for_same_user_are_not_lost(self, store_factory):
        store, history = store_factory(paid_history())
        amounts = [1000 + 50 * i for i in range(50)]

        await asyncio.gather(
            *(
                store.record_transaction(make_context(session_id=f"c-{i}", amount=str(a)))
                for i, a in enumerate(amounts)
            )
        )

        profile = await store.get("user-1")
        expected = [2000, 2500, 3000, 2500, 2000, 3000, *amounts]
        assert profile.transaction_count == 56
        assert profile.average_amount == pytest.approx(statistics.fmean(expected))
        assert math.isclose(
            profile.standard_deviation, statistics.pstdev(expected), rel_tol=1e-9
        )
        assert history.paid_queries == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_transactions_create_one_profile(self, store_factory):
        store, _ = store_factory()
        await asyncio.gather(
            *(store.record_transaction(make_context(session_id=f"n-{i}")) for i in range(10))
        )
        profile = await store.get("user-1")
        assert profile.transaction_count == 10
        assert len(store) == 1
