import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_firebase_service_account, get_site_url
from app.database.models import NotificationQueue, PushSubscription
from app.models.notification import DispatchOutcome, NotificationRequest, NotificationContent
from app.models.subscription import SubscriptionStatus
from app.services import subscriptions as store
from app.services.audience import resolve_audience, load_languages
from app.services.errors import ConfigurationError, DeliveryError
from app.services.localization import content_for_request

logger = logging.getLogger(__name__)

# FCM accepts at most 500 messages per send_each call
FCM_BATCH_SIZE = 500
WEB_ICON = "/favicon.ico"
NATIVE_ICON = "ic_notification"
NATIVE_COLOR = "#7C3AED"

_init_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    """
    Returns the default Firebase app, initializing it once from the configured
    service account. Raises ConfigurationError when no credentials are set.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()
    with _init_lock:
        if not firebase_admin._apps:
            service_account = get_firebase_service_account()
            if not service_account:
                logger.error("FIREBASE_SERVICE_ACCOUNT not configured")
                raise ConfigurationError("FCM not configured")
            firebase_admin.initialize_app(credentials.Certificate(service_account))
            logger.info(f"Firebase Admin SDK initialized for project {service_account.get('project_id')}")
    return firebase_admin.get_app()


# --- Subscribe / unsubscribe ---

async def subscribe_device(db: AsyncSession, user_id: str, token: str, platform: str = "web") -> PushSubscription:
    subscription = await store.upsert_subscription(
        db,
        user_id=user_id,
        channel=store.FCM_CHANNEL,
        endpoint=store.encode_fcm_endpoint(token, platform),
        p256dh=store.FCM_PLACEHOLDER,
        auth=store.FCM_PLACEHOLDER,
    )
    logger.info(f"FCM subscription saved for user {user_id} ({platform}), token {token[:20]}...")
    return subscription


async def unsubscribe_device(db: AsyncSession, user_id: str) -> int:
    removed = await store.delete_subscriptions(db, user_id, store.FCM_CHANNEL)
    logger.info(f"Removed {removed} FCM subscription(s) for user {user_id}")
    return removed


async def get_device_subscription(db: AsyncSession, user_id: str) -> SubscriptionStatus:
    subscription = await store.get_subscription(db, user_id, store.FCM_CHANNEL)
    decoded = store.decode_fcm_endpoint(subscription.endpoint) if subscription else None
    if not decoded:
        return SubscriptionStatus(user_id=user_id, subscribed=False)
    return SubscriptionStatus(user_id=user_id, subscribed=True, platform=decoded[1])


# --- Sending ---

def event_data(request: NotificationRequest) -> Dict[str, str]:
    """Event fields for client-side click handling; FCM data values must be strings."""
    fields = {
        "type": request.type,
        "workoutId": request.workout_id,
        "workoutTitle": request.workout_title,
        "workoutTitleBg": request.workout_title_bg,
        "workoutDate": request.workout_date,
        "workoutTime": request.workout_time,
    }
    return {k: str(v) for k, v in fields.items() if v is not None}


def build_message(token: str, platform: str, content: NotificationContent, request: NotificationRequest) -> messaging.Message:
    tag = request.type or "default"
    message = messaging.Message(
        token=token,
        notification=messaging.Notification(title=content.heading, body=content.body),
        data=event_data(request),
    )
    if platform == "native":
        message.android = messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                icon=NATIVE_ICON,
                color=NATIVE_COLOR,
                tag=tag,
                default_vibrate_timings=True,
                default_light_settings=True,
            ),
        )
        message.apns = messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
        )
    else:
        link = f"{get_site_url()}/dashboard"
        message.webpush = messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                icon=WEB_ICON,
                badge=WEB_ICON,
                tag=tag,
                vibrate=[200, 100, 200],
                require_interaction=True,
            ),
            # FCM rejects non-HTTPS links
            fcm_options=messaging.WebpushFCMOptions(link=link) if link.startswith("https://") else None,
        )
    return message


def is_invalid_token_error(exc) -> bool:
    return isinstance(exc, (messaging.UnregisteredError, firebase_exceptions.InvalidArgumentError))


async def record_in_app_notifications(db: AsyncSession, request: NotificationRequest, user_ids) -> None:
    """Logs the delivered event in notification_queue, in both languages."""
    user_ids = sorted(set(user_ids))
    if not user_ids:
        return
    en = content_for_request(request, "en")
    bg = content_for_request(request, "bg")
    now = datetime.now(timezone.utc)
    db.add_all([
        NotificationQueue(
            user_id=user_id,
            workout_id=None if request.type == "workout_deleted" else request.workout_id,
            notification_type=request.type,
            message=en.body,
            message_bg=bg.body,
            is_sent=True,
            scheduled_for=now,
        )
        for user_id in user_ids
    ])
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error inserting notification records: {e}")


async def send_batch(messages: List[messaging.Message], app) -> messaging.BatchResponse:
    try:
        return await asyncio.to_thread(messaging.send_each, messages, app=app)
    except firebase_exceptions.FirebaseError as e:
        logger.error(f"FCM batch send failed: {e}")
        raise DeliveryError("FCM send failed", details=str(e), status_code=502)
    except ValueError as e:
        # raised by the SDK while encoding a malformed message
        logger.error(f"FCM batch rejected before sending: {e}")
        raise DeliveryError("FCM send failed", details=str(e), status_code=502)


async def send_fcm_notification(db: AsyncSession, request: NotificationRequest) -> DispatchOutcome:
    """
    Delivers one event to every stored FCM token of the resolved audience,
    localized per recipient. Tokens FCM reports as unregistered or invalid are
    deleted from the subscription store.

    Batches are independent: a batch FCM refuses counts its tokens as failed
    while earlier results are still pruned and logged. DeliveryError is raised
    only when no batch went through.
    """
    app = get_firebase_app()

    user_ids = await resolve_audience(db, request)
    subscriptions = await store.get_subscriptions_for_users(db, user_ids, store.FCM_CHANNEL)

    targets = []
    for subscription in subscriptions:
        decoded = store.decode_fcm_endpoint(subscription.endpoint)
        if decoded is None:
            logger.warning(f"Skipping subscription {subscription.id} with unexpected endpoint")
            continue
        targets.append((subscription, decoded[0], decoded[1]))

    if not targets:
        logger.info("No FCM subscriptions found")
        return DispatchOutcome(
            channel=store.FCM_CHANNEL,
            success=True,
            details={"message": "No subscriptions to notify", "sent": 0, "total": 0, "expired": 0},
        )

    languages = await load_languages(db, [s.user_id for s, _, _ in targets])
    contents = {}
    messages = []
    for subscription, token, platform in targets:
        language = languages.get(subscription.user_id, "en")
        if language not in contents:
            contents[language] = content_for_request(request, language)
        messages.append(build_message(token, platform, contents[language], request))

    logger.info(f"Sending FCM to {len(messages)} devices")
    sent, failed = 0, 0
    expired_ids, delivered_users = [], []
    batch_error, batches_sent = None, 0
    try:
        for start in range(0, len(messages), FCM_BATCH_SIZE):
            chunk = targets[start:start + FCM_BATCH_SIZE]
            try:
                batch = await send_batch(messages[start:start + FCM_BATCH_SIZE], app)
            except DeliveryError as e:
                batch_error = e
                failed += len(chunk)
                continue
            batches_sent += 1
            for (subscription, _, _), response in zip(chunk, batch.responses):
                if response.success:
                    sent += 1
                    delivered_users.append(subscription.user_id)
                elif is_invalid_token_error(response.exception):
                    expired_ids.append(subscription.id)
                else:
                    failed += 1
                    logger.error(f"FCM error for user {subscription.user_id}: {response.exception}")
    finally:
        if expired_ids:
            logger.info(f"Deleting {len(expired_ids)} invalid FCM tokens")
            await store.delete_subscriptions_by_id(db, expired_ids)
        await record_in_app_notifications(db, request, delivered_users)

    # nothing reached FCM at all
    if batch_error is not None and batches_sent == 0:
        raise batch_error

    logger.info(f"FCM sent {sent}/{len(messages)} notifications")
    return DispatchOutcome(
        channel=store.FCM_CHANNEL,
        success=True,
        details={
            "message": "FCM Notifications sent",
            "sent": sent,
            "total": len(messages),
            "expired": len(expired_ids),
            "failed": failed,
        },
    )
