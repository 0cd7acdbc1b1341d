from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from guard import protect
from identity import Account
from notifications import NotificationService, get_notification_service

router = APIRouter(prefix="/api/host", tags=["host"])


class AppNotificationsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_updates: Optional[bool] = None
    event_dates: Optional[bool] = None
    package_renewal: Optional[bool] = None
    system_interactions: Optional[bool] = None


class EmailNotificationsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_updates: Optional[bool] = None
    event_dates: Optional[bool] = None
    package_renewal: Optional[bool] = None
    before_sending_invitations: Optional[bool] = None
    after_sending_invitations: Optional[bool] = None


class NotificationsPayload(BaseModel):
    app_notifications: Optional[AppNotificationsPatch] = None
    email_notifications: Optional[EmailNotificationsPatch] = None


@router.get("/notifications")
def get_notification_preferences(account: Account = Depends(protect),
                                 service: NotificationService = Depends(get_notification_service)):
    return {"status": "success", "data": {"notifications": service.get(account.id)}}


@router.patch("/notifications")
def update_notification_preferences(payload: NotificationsPayload, account: Account = Depends(protect),
                                    service: NotificationService = Depends(get_notification_service)):
    app = payload.app_notifications.model_dump(exclude_none=True) if payload.app_notifications else None
    email = payload.email_notifications.model_dump(exclude_none=True) if payload.email_notifications else None
    preferences = service.update(account.id, app, email)
    return {
        "status": "success",
        "message": "Notification preferences updated successfully",
        "data": {"notifications": preferences},
    }
