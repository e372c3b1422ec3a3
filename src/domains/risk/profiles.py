"""Per-user risk profile cache.

Profiles are built lazily from a user's most recent paid transactions and
kept in memory for the life of the process. Every read and every
read-modify-write of a user's profile is serialized on a per-user lock so
concurrent transactions for the same user cannot lose updates to the running
mean and standard deviation.
"""

import asyncio
import math
from collections import defaultdict
from datetime import UTC, datetime

import structlog

from .config import RiskConfig, default_config
from .geo import GeoResolver
from .history import TransactionHistory
from .models import TransactionContext, TransactionRecord, UserRiskProfile

logger = structlog.get_logger()


class ProfileStore:
    def __init__(
        self,
        history: TransactionHistory,
        geo: GeoResolver | None = None,
        config: RiskConfig | None = None,
    ) -> None:
        self._history = history
        self._config = config or default_config
        self._geo = geo or GeoResolver(self._config.profiles.default_country)
        self._profiles: dict[str, UserRiskProfile] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __len__(self) -> int:
        return len(self._profiles)

    async def get(self, user_id: str) -> UserRiskProfile | None:
        """Return a snapshot of the user's profile, building it on first use.

        Users with no paid history get None and are not cached, so the
        first analyzed transaction creates their profile.
        """
        async with self._locks[user_id]:
            profile = await self._load(user_id)
            return profile.model_copy(deep=True) if profile else None

    async def record_transaction(self, ctx: TransactionContext) -> UserRiskProfile:
        """Fold an analyzed transaction into the user's profile.

        Called only after scoring so a transaction never biases its own risk.
        """
        location = await self._geo.resolve(ctx.ip_address)
        async with self._locks[ctx.user_id]:
            profile = await self._load(ctx.user_id)
            if profile is None:
                profile = UserRiskProfile(
                    user_id=ctx.user_id,
                    transaction_count=1,
                    average_amount=ctx.amount_float,
                    standard_deviation=0.0,
                )
                self._profiles[ctx.user_id] = profile
                logger.info("risk_profile_created", user_id=ctx.user_id)
            else:
                self._update_statistics(profile, ctx.amount_float)

            if ctx.session_type:
                profile.preferred_session_types.add(ctx.session_type)
            if ctx.device_fingerprint:
                profile.known_devices.add(ctx.device_fingerprint)
            if location:
                profile.known_locations.add(location)
            profile.last_updated = datetime.now(UTC)
            return profile.model_copy(deep=True)

    async def _load(self, user_id: str) -> UserRiskProfile | None:
        # Caller holds the user's lock
        cached = self._profiles.get(user_id)
        if cached is not None:
            return cached

        records = await self._history.paid_transactions(
            user_id, limit=self._config.profiles.history_limit
        )
        if not records:
            return None

        profile = await self._build(user_id, records)
        self._profiles[user_id] = profile
        logger.info(
            "risk_profile_built",
            user_id=user_id,
            transaction_count=profile.transaction_count,
            average_amount=round(profile.average_amount, 2),
        )
        return profile

    async def _build(self, user_id: str, records: list[TransactionRecord]) -> UserRiskProfile:
        amounts = [r.amount for r in records]
        mean = sum(amounts) / len(amounts)
        variance = sum((a - mean) ** 2 for a in amounts) / len(amounts)

        locations = set()
        for ip in {r.ip_address for r in records if r.ip_address}:
            country = await self._geo.resolve(ip)
            if country:
                locations.add(country)

        return UserRiskProfile(
            user_id=user_id,
            transaction_count=len(records),
            average_amount=mean,
            standard_deviation=math.sqrt(variance),
            known_devices={r.device_fingerprint for r in records if r.device_fingerprint},
            preferred_session_types={r.session_type for r in records if r.session_type},
            known_locations=locations,
        )

    @staticmethod
    def _update_statistics(profile: UserRiskProfile, amount: float) -> None:
        """Welford update of the population mean and standard deviation."""
        n = profile.transaction_count
        m2 = (profile.standard_deviation ** 2) * n
        delta = amount - profile.average_amount
        new_mean = profile.average_amount + delta / (n + 1)
        m2 += delta * (amount - new_mean)

        profile.transaction_count = n + 1
        profile.average_amount = new_mean
        profile.standard_deviation = math.sqrt(max(m2, 0.0) / (n + 1))
