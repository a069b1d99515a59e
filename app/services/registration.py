import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.fcm import subscribe_device, unsubscribe_device, get_device_subscription

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBING = "unsubscribing"


class PermissionDeniedError(Exception):
    """The user refused notification permission on the device."""


TokenFetcher = Callable[[], Awaitable[Optional[str]]]


class DeviceRegistration:
    """
    Token-channel registration lifecycle of one user:

        UNREGISTERED -> REGISTERING -> SUBSCRIBED -> UNSUBSCRIBING -> UNREGISTERED

    A denied permission or a failed token fetch sends REGISTERING back to
    UNREGISTERED and is reported through `error`, never raised. Subscribing
    again while SUBSCRIBED replaces the stored token.
    """

    def __init__(self, db: AsyncSession, user_id: str, platform: str = "web"):
        self.db = db
        self.user_id = user_id
        self.platform = platform
        self.state = SubscriptionState.UNREGISTERED
        self.token: Optional[str] = None
        self.error: Optional[str] = None

    async def refresh(self) -> SubscriptionState:
        status = await get_device_subscription(self.db, self.user_id)
        self.state = SubscriptionState.SUBSCRIBED if status.subscribed else SubscriptionState.UNREGISTERED
        return self.state

    def _fail(self, message: str) -> bool:
        logger.warning(f"Registration for user {self.user_id} failed: {message}")
        self.error = message
        self.token = None
        self.state = SubscriptionState.UNREGISTERED
        return False

    async def subscribe(self, fetch_token: TokenFetcher) -> bool:
        if self.state in (SubscriptionState.REGISTERING, SubscriptionState.UNSUBSCRIBING):
            self.error = f"Registration busy ({self.state.value})"
            return False

        self.state = SubscriptionState.REGISTERING
        self.error = None
        try:
            token = await fetch_token()
        except PermissionDeniedError:
            return self._fail("Notification permission denied")
        except Exception as e:
            logger.exception(f"Token fetch failed for user {self.user_id}: {e}")
            return self._fail("Failed to get FCM token")
        if not token:
            return self._fail("Failed to get FCM token")

        try:
            await subscribe_device(self.db, self.user_id, token, self.platform)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error saving subscription for user {self.user_id}: {e}")
            return self._fail("Failed to save subscription")

        self.token = token
        self.state = SubscriptionState.SUBSCRIBED
        return True

    async def unsubscribe(self) -> bool:
        previous = self.state
        self.state = SubscriptionState.UNSUBSCRIBING
        try:
            await unsubscribe_device(self.db, self.user_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error unsubscribing user {self.user_id}: {e}")
            self.state = previous
            self.error = "Failed to unsubscribe"
            return False

        self.token = None
        self.error = None
        self.state = SubscriptionState.UNREGISTERED
        return True
