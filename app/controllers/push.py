import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.models.subscription import SubscribeRequest, SubscriptionStatus
from app.services.fcm import get_device_subscription
from app.services.registration import DeviceRegistration

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/subscriptions")
async def subscribe(request: SubscribeRequest, db: AsyncSession = Depends(get_db)):
    """
    Stores the device's FCM token as the user's one token-channel subscription.
    Calling it again with the same token leaves the same single row.
    """
    registration = DeviceRegistration(db, request.user_id, platform=request.platform)

    async def posted_token():
        return request.token

    if not await registration.subscribe(posted_token):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=registration.error)
    return {"success": True, "state": registration.state.value}


@router.delete("/subscriptions/{user_id}")
async def unsubscribe(user_id: str, db: AsyncSession = Depends(get_db)):
    registration = DeviceRegistration(db, user_id)
    await registration.refresh()
    if not await registration.unsubscribe():
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=registration.error)
    return {"success": True, "state": registration.state.value}


@router.get("/subscriptions/{user_id}", response_model=SubscriptionStatus)
async def get_subscription_status(user_id: str, db: AsyncSession = Depends(get_db)):
    return await get_device_subscription(db, user_id)
