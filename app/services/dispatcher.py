import asyncio
import logging
from typing import List

from app.database.connection import get_db_session
from app.models.notification import DispatchOutcome, NotificationRequest
from app.services.errors import NotificationError
from app.services.fcm import send_fcm_notification
from app.services.onesignal import send_broker_notification

logger = logging.getLogger(__name__)

def channel_senders():
    return (
        ("broker", send_broker_notification),
        ("fcm", send_fcm_notification),
    )


async def run_channel(sender, request: NotificationRequest) -> DispatchOutcome:
    # each channel gets its own session so both can run at once
    async with get_db_session() as db:
        return await sender(db, request)


def to_outcome(channel: str, result) -> DispatchOutcome:
    if isinstance(result, DispatchOutcome):
        return result
    if isinstance(result, NotificationError):
        details = result.to_dict()
        details["status"] = result.status_code
        return DispatchOutcome(channel=channel, success=False, details=details)
    return DispatchOutcome(channel=channel, success=False, details={"error": str(result)})


async def dispatch_workout_notification(request: NotificationRequest) -> List[DispatchOutcome]:
    """
    Sends one event through every channel at once and waits for all of them
    to settle. A failing channel never stops the others and never raises here;
    its failure is returned as an unsuccessful DispatchOutcome.
    """
    channels = channel_senders()
    results = await asyncio.gather(
        *(run_channel(sender, request) for _, sender in channels),
        return_exceptions=True,
    )

    outcomes = []
    for (channel, _), result in zip(channels, results):
        outcome = to_outcome(channel, result)
        if outcome.success:
            logger.info(f"[{channel}] {request.type} for {request.workout_id} delivered: {outcome.details}")
        elif isinstance(result, BaseException) and not isinstance(result, NotificationError):
            logger.error(f"[{channel}] unexpected error dispatching {request.type}", exc_info=result)
        else:
            logger.warning(f"[{channel}] {request.type} for {request.workout_id} failed: {outcome.details}")
        outcomes.append(outcome)
    return outcomes
