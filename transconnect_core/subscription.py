"""Per-user plans, device binding and weekly usage metering.

The metering period is reset lazily: whenever usage is read or written and
seven days have passed since ``last_reset``, usage drops to zero and the
period restarts at "now". Nothing runs in the background.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Final

from .errors import NotFoundError, ValidationError
from .models import Plan, SubscriptionState, UserRecord, utcnow
from .users import UserDirectory

LOGGER = logging.getLogger(__name__)

METERING_PERIOD: Final[timedelta] = timedelta(days=7)
WEEKLY_LIMITS: Final[dict[str, int]] = {
    Plan.FREE.value: 30,
    Plan.WEEKLY.value: 180,
    Plan.MONTHLY.value: 9999,
    Plan.YEARLY.value: 9999,
}


def quota_for(plan: str) -> int:
    """Minutes allowed per metering period; unknown plans get the free tier."""
    return WEEKLY_LIMITS.get(str(plan), WEEKLY_LIMITS[Plan.FREE.value])


class SubscriptionMeter:
    def __init__(self, directory: UserDirectory, clock: Callable[[], datetime] = utcnow) -> None:
        self._directory = directory
        self._clock = clock

    quota_for = staticmethod(quota_for)

    async def set_subscription(self, user_id: str, plan: str, device_id: str | None) -> SubscriptionState:
        """Install a fresh subscription with zero usage."""
        try:
            plan = Plan(plan).value
        except ValueError as exc:
            raise ValidationError(f"Unknown plan: {plan}") from exc
        now = self._clock()
        state = SubscriptionState(plan=plan, device_id=device_id, usage=0, last_reset=now, start_date=now)
        await self._directory.update(user_id, {"subscription": state})
        LOGGER.info("User %s subscribed to %s plan", user_id, plan)
        return replace(state)

    async def get_subscription(self, user_id: str) -> SubscriptionState:
        user = await self._directory.get(user_id)
        if user is None or user.subscription is None:
            return SubscriptionState()
        return user.subscription

    async def check_device(self, user_id: str, device_id: str | None) -> bool:
        """True when *device_id* is the device bound to the user's subscription.

        A user without a bound device never matches.
        """
        subscription = await self.get_subscription(user_id)
        return subscription.device_id is not None and subscription.device_id == device_id

    async def get_usage(self, user_id: str) -> float:
        subscription = await self.get_subscription(user_id)
        if not self._expired(subscription):
            return subscription.usage or 0

        def apply(user: UserRecord) -> float:
            # Re-checked under the directory lock; a concurrent write may
            # already have started a new period.
            now = self._clock()
            current = user.subscription or SubscriptionState()
            if self._expired(current, now):
                LOGGER.info("Metering period expired for user %s; resetting usage", user.id)
                current.usage = 0
                current.last_reset = now
            user.subscription = current
            return current.usage or 0

        return await self._directory.mutate(user_id, apply)

    async def update_usage(self, user_id: str, minutes: float) -> None:
        def apply(user: UserRecord) -> float:
            now = self._clock()
            subscription = user.subscription or SubscriptionState(last_reset=now)
            if self._expired(subscription, now):
                LOGGER.info("Metering period expired for user %s; resetting usage", user.id)
                subscription.usage = 0
                subscription.last_reset = now
            subscription.usage = (subscription.usage or 0) + minutes
            user.subscription = subscription
            return subscription.usage

        try:
            total = await self._directory.mutate(user_id, apply)
        except NotFoundError:
            LOGGER.warning("Ignoring usage update for unknown user %s", user_id)
            return
        LOGGER.debug("User %s usage now %s minutes", user_id, total)

    async def reset_weekly_usage(self, user_id: str) -> None:
        def apply(user: UserRecord) -> None:
            subscription = user.subscription or SubscriptionState()
            subscription.usage = 0
            subscription.last_reset = self._clock()
            user.subscription = subscription

        try:
            await self._directory.mutate(user_id, apply)
        except NotFoundError:
            LOGGER.warning("Ignoring usage reset for unknown user %s", user_id)
            return
        LOGGER.info("Reset weekly usage for user %s", user_id)

    async def remaining(self, user_id: str) -> float:
        subscription = await self.get_subscription(user_id)
        usage = await self.get_usage(user_id)
        return max(0, quota_for(subscription.plan) - usage)

    async def may_proceed(self, user_id: str) -> bool:
        subscription = await self.get_subscription(user_id)
        return await self.get_usage(user_id) < quota_for(subscription.plan)

    def _expired(self, subscription: SubscriptionState, now: datetime | None = None) -> bool:
        if subscription.last_reset is None:
            return False
        return (now or self._clock()) - subscription.last_reset >= METERING_PERIOD


__all__ = ["METERING_PERIOD", "WEEKLY_LIMITS", "SubscriptionMeter", "quota_for"]
