import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import ONESIGNAL_API_URL, HTTP_TIMEOUT_SECONDS, get_onesignal_credentials, get_site_url
from app.models.notification import DispatchOutcome, NotificationRequest
from app.services.audience import resolve_audience
from app.services.errors import ConfigurationError, DeliveryError
from app.services.localization import content_for_request
from app.services.subscriptions import BROKER_CHANNEL

logger = logging.getLogger(__name__)


def get_app_id() -> str:
    app_id, _ = get_onesignal_credentials()
    if not app_id:
        raise ConfigurationError("OneSignal App ID not configured")
    return app_id


def build_broker_payload(app_id: str, request: NotificationRequest, user_ids) -> dict:
    """
    OneSignal notification body. Content is rendered once in the default
    language for every recipient.
    """
    content = content_for_request(request)
    return {
        "app_id": app_id,
        "include_external_user_ids": sorted(user_ids),
        "headings": {"en": content.heading},
        "contents": {"en": content.body},
        "data": {
            "type": request.type,
            "workoutId": request.workout_id,
        },
        "web_url": f"{get_site_url()}/dashboard",
    }


async def post_to_broker(api_key: str, payload: dict) -> dict:
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Basic {api_key}",
    }
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        try:
            response = await client.post(ONESIGNAL_API_URL, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"OneSignal request failed: {e}")
            raise DeliveryError("Failed to reach OneSignal", details=str(e), status_code=502)

    try:
        result = response.json()
    except ValueError:
        result = {"raw": response.text}

    if not response.is_success:
        logger.error(f"OneSignal responded with {response.status_code}: {result}")
        raise DeliveryError("Failed to send notification", details=result, status_code=response.status_code)

    logger.info(f"OneSignal response: {result}")
    return result


async def send_broker_notification(db: AsyncSession, request: NotificationRequest) -> DispatchOutcome:
    """
    Delivers one event through OneSignal, addressed by external user id.
    Raises ConfigurationError when credentials are missing and DeliveryError
    when OneSignal rejects the request or cannot be reached.
    """
    app_id, api_key = get_onesignal_credentials()
    if not app_id or not api_key:
        logger.error("Missing OneSignal credentials")
        raise ConfigurationError("OneSignal not configured")

    user_ids = await resolve_audience(db, request)
    if not user_ids:
        logger.info("No users to notify via OneSignal")
        return DispatchOutcome(channel=BROKER_CHANNEL, success=True, details={"message": "No users to notify", "sent": 0})

    payload = build_broker_payload(app_id, request, user_ids)
    logger.info(f"Sending {request.type} to {len(user_ids)} users via OneSignal")
    result = await post_to_broker(api_key, payload)
    return DispatchOutcome(
        channel=BROKER_CHANNEL,
        success=True,
        details={"result": result, "sent": len(user_ids)},
    )
