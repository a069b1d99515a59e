import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import PushSubscription

logger = logging.getLogger(__name__)

FCM_CHANNEL = "fcm"
BROKER_CHANNEL = "broker"

# Token-channel rows keep the token inside `endpoint`; the Web Push key
# columns hold a placeholder.
FCM_WEB_PREFIX = "fcm://token/"
FCM_NATIVE_PREFIX = "native://fcm/"
FCM_PLACEHOLDER = "fcm"


def encode_fcm_endpoint(token: str, platform: str = "web") -> str:
    prefix = FCM_NATIVE_PREFIX if platform == "native" else FCM_WEB_PREFIX
    return f"{prefix}{token}"


def decode_fcm_endpoint(endpoint: str) -> Optional[Tuple[str, str]]:
    """Returns (token, platform) for an FCM endpoint, or None for anything else."""
    if endpoint.startswith(FCM_NATIVE_PREFIX):
        return endpoint[len(FCM_NATIVE_PREFIX):], "native"
    if endpoint.startswith(FCM_WEB_PREFIX):
        return endpoint[len(FCM_WEB_PREFIX):], "web"
    return None


async def get_subscription(db: AsyncSession, user_id: str, channel: str) -> Optional[PushSubscription]:
    stmt = select(PushSubscription).where(
        PushSubscription.user_id == user_id,
        PushSubscription.channel == channel,
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def upsert_subscription(
        db: AsyncSession,
        user_id: str,
        channel: str,
        endpoint: str,
        p256dh: str,
        auth: str,
) -> PushSubscription:
    """
    Makes `endpoint` the one subscription of `user_id` on `channel`.
    Runs as a single transaction; the (user_id, channel) unique constraint
    turns a lost insert race into an update of the winning row.
    """
    subscription = await get_subscription(db, user_id, channel)
    if subscription:
        subscription.endpoint = endpoint
        subscription.p256dh = p256dh
        subscription.auth = auth
    else:
        subscription = PushSubscription(user_id=user_id, channel=channel, endpoint=endpoint, p256dh=p256dh, auth=auth)
        db.add(subscription)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Concurrent subscribe for user {user_id} on {channel}; updating existing row")
        subscription = await get_subscription(db, user_id, channel)
        if subscription is None:
            raise
        subscription.endpoint = endpoint
        subscription.p256dh = p256dh
        subscription.auth = auth
        await db.commit()

    await db.refresh(subscription)
    return subscription


async def delete_subscriptions(db: AsyncSession, user_id: str, channel: str) -> int:
    stmt = delete(PushSubscription).where(
        PushSubscription.user_id == user_id,
        PushSubscription.channel == channel,
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount or 0


async def get_subscriptions_for_users(db: AsyncSession, user_ids: Iterable[str], channel: str) -> List[PushSubscription]:
    user_ids = list(user_ids)
    if not user_ids:
        return []
    stmt = select(PushSubscription).where(
        PushSubscription.user_id.in_(user_ids),
        PushSubscription.channel == channel,
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def delete_subscriptions_by_id(db: AsyncSession, subscription_ids: Iterable[int]) -> int:
    subscription_ids = list(subscription_ids)
    if not subscription_ids:
        return 0
    result = await db.execute(delete(PushSubscription).where(PushSubscription.id.in_(subscription_ids)))
    await db.commit()
    return result.rowcount or 0
