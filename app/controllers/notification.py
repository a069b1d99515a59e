# file: controllers/notification.py

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.models.notification import NotificationRequest, DispatchResponse
from app.services.dispatcher import dispatch_workout_notification
from app.services.errors import NotificationError
from app.services.fcm import send_fcm_notification
from app.services.onesignal import send_broker_notification, get_app_id

router = APIRouter()
logger = logging.getLogger(__name__)


def error_response(exc: NotificationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@router.post("/dispatch", response_model=DispatchResponse)
async def dispatch_notification(request: NotificationRequest):
    """
    Fans one workout event out to every delivery channel. Always answers
    success; per-channel results are listed in `outcomes`.
    """
    logger.info(f"Received notification request: {request.type} for workout {request.workout_id}")
    outcomes = await dispatch_workout_notification(request)
    return DispatchResponse(success=True, outcomes=outcomes)


@router.post("/broker")
async def send_broker(request: NotificationRequest, db: AsyncSession = Depends(get_db)):
    """
    Sends through OneSignal only. Missing credentials answer 500; a OneSignal
    rejection is passed back with OneSignal's own status code.
    """
    try:
        outcome = await send_broker_notification(db, request)
    except NotificationError as e:
        return error_response(e)
    return {"success": True, **outcome.details}


@router.post("/fcm")
async def send_fcm(request: NotificationRequest, db: AsyncSession = Depends(get_db)):
    """
    Sends through Firebase Cloud Messaging only.
    """
    try:
        outcome = await send_fcm_notification(db, request)
    except NotificationError as e:
        return error_response(e)
    return outcome.details


@router.get("/broker/app-id")
async def get_broker_app_id():
    try:
        return {"appId": get_app_id()}
    except NotificationError as e:
        return error_response(e)
