from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import BaseModel

from database import serialize
from events import DEFAULT_PAGE_SIZE, EventService, get_event_service
from forms import parse_json_field
from guard import protect, restrict_to
from identity import Account
from schemas import EventDetails, GuestEntry, InvitationMethod, InvitationSettings, LaunchSettings, Supervisor
from uploads import UploadStore, get_upload_store

router = APIRouter(prefix="/api/events", tags=["events"])


class StatusPayload(BaseModel):
    status: Optional[str] = None


class GuestStatusPayload(BaseModel):
    status: str


class RsvpPayload(BaseModel):
    status: Literal["confirmed", "declined"]


class InvitationPayload(BaseModel):
    method: InvitationMethod = "email"


def _dump(model) -> Any:
    if model is None:
        return None
    if isinstance(model, list):
        return [m.model_dump(exclude_none=True) for m in model]
    return model.model_dump(exclude_none=True)


def _event_form(event_details, supervisors_list, invitation_settings, launch_settings) -> Dict[str, Any]:
    invitation = parse_json_field(invitation_settings, InvitationSettings, "invitation_settings")
    return {
        "event_details": _dump(parse_json_field(event_details, EventDetails, "event_details")),
        "supervisors_list": _dump(parse_json_field(supervisors_list, List[Supervisor], "supervisors_list")),
        # template_image is only ever set from an uploaded file
        "invitation_settings": invitation.model_dump(exclude_none=True, exclude={"template_image"})
        if invitation else None,
        "launch_settings": _dump(parse_json_field(launch_settings, LaunchSettings, "launch_settings")),
    }


def _attach_template(data: Dict[str, Any], template_image: Optional[UploadFile],
                     uploads: UploadStore) -> Optional[str]:
    path = uploads.save_optional(template_image, "template_image")
    if path:
        settings = data.get("invitation_settings") or {}
        settings["template_image"] = path
        data["invitation_settings"] = settings
    return path


def _one(event: dict) -> dict:
    return {"status": "success", "data": {"event": serialize(event)}}


def _many(events: List[dict], results: Optional[int] = None) -> dict:
    return {
        "status": "success",
        "results": len(events) if results is None else results,
        "data": {"events": serialize(events)},
    }


@router.get("/upcoming")
def upcoming_events(account: Account = Depends(protect),
                    service: EventService = Depends(get_event_service)):
    return _many(service.upcoming_events(account))


@router.get("/my-events")
def my_events(account: Account = Depends(protect),
              service: EventService = Depends(get_event_service)):
    return _many(service.events_by_host(account.id, account))


@router.get("/host/{host_id}")
def events_by_host(host_id: str, account: Account = Depends(protect),
                   service: EventService = Depends(get_event_service)):
    return _many(service.events_by_host(host_id, account))


@router.delete("/admin/delete-all", status_code=204)
def delete_all_events(account: Account = Depends(restrict_to("admin")),
                      service: EventService = Depends(get_event_service)):
    service.delete_all_events()
    return Response(status_code=204)


@router.get("/{event_id}/stats")
def event_stats(event_id: str, account: Account = Depends(protect),
                service: EventService = Depends(get_event_service)):
    return {"status": "success", "data": service.event_stats(event_id, account)}


@router.patch("/{event_id}/status")
def update_event_status(event_id: str, payload: StatusPayload, account: Account = Depends(protect),
                        service: EventService = Depends(get_event_service)):
    return _one(service.update_status(event_id, payload.status, account))


@router.get("")
def list_events(
    status: Optional[str] = None,
    type: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    account: Account = Depends(protect),
    service: EventService = Depends(get_event_service),
):
    events, total = service.list_events(account, status=status, event_type=type, sort=sort,
                                        page=page, limit=limit)
    return _many(events, total)


@router.post("", status_code=201)
def create_event(
    event_details: Optional[str] = Form(None),
    guest_list: Optional[str] = Form(None),
    supervisors_list: Optional[str] = Form(None),
    invitation_settings: Optional[str] = Form(None),
    launch_settings: Optional[str] = Form(None),
    template_image: Optional[UploadFile] = File(None),
    account: Account = Depends(protect),
    service: EventService = Depends(get_event_service),
    uploads: UploadStore = Depends(get_upload_store),
):
    data = _event_form(event_details, supervisors_list, invitation_settings, launch_settings)
    guests = parse_json_field(guest_list, List[GuestEntry], "guest_list") or []
    data = {k: v for k, v in data.items() if v is not None}
    path = _attach_template(data, template_image, uploads)
    try:
        event = service.create_event(data, guests, account)
    except Exception:
        if path:
            uploads.delete(path)
        raise
    return _one(event)


@router.get("/{event_id}")
def get_event(event_id: str, account: Account = Depends(protect),
              service: EventService = Depends(get_event_service)):
    return _one(service.get_event(event_id, account))


@router.patch("/{event_id}")
def update_event(
    event_id: str,
    event_details: Optional[str] = Form(None),
    guest_list: Optional[str] = Form(None),
    supervisors_list: Optional[str] = Form(None),
    invitation_settings: Optional[str] = Form(None),
    launch_settings: Optional[str] = Form(None),
    template_image: Optional[UploadFile] = File(None),
    account: Account = Depends(protect),
    service: EventService = Depends(get_event_service),
    uploads: UploadStore = Depends(get_upload_store),
):
    data = _event_form(event_details, supervisors_list, invitation_settings, launch_settings)
    guests = parse_json_field(guest_list, List[GuestEntry], "guest_list")
    previous = service.get_event(event_id, account)
    old_template = (previous.get("invitation_settings") or {}).get("template_image")

    path = _attach_template(data, template_image, uploads)
    if not path and old_template and data.get("invitation_settings") is not None:
        data["invitation_settings"]["template_image"] = old_template
    try:
        event = service.update_event(event_id, data, guests, account)
    except Exception:
        if path:
            uploads.delete(path)
        raise
    if path and old_template and old_template != path:
        uploads.delete(old_template)
    return _one(event)


@router.delete("/{event_id}", status_code=204)
def delete_event(event_id: str, account: Account = Depends(protect),
                 service: EventService = Depends(get_event_service)):
    service.delete_event(event_id, account)
    return Response(status_code=204)


# Guests
@router.patch("/{event_id}/guests/{guest_id}/status")
def update_guest_status(event_id: str, guest_id: str, payload: GuestStatusPayload,
                        account: Account = Depends(protect),
                        service: EventService = Depends(get_event_service)):
    guest = service.set_guest_status(event_id, guest_id, payload.status, account)
    return {"status": "success", "data": {"guest": serialize(guest)}}


@router.patch("/{event_id}/guests/{guest_id}/rsvp")
def respond_to_rsvp(event_id: str, guest_id: str, payload: RsvpPayload,
                    account: Account = Depends(protect),
                    service: EventService = Depends(get_event_service)):
    guest = service.respond_to_rsvp(event_id, guest_id, payload.status, account)
    return {"status": "success", "data": {"guest": serialize(guest)}}


@router.patch("/{event_id}/guests/{guest_id}/check-in")
def check_in_guest(event_id: str, guest_id: str, account: Account = Depends(protect),
                   service: EventService = Depends(get_event_service)):
    guest = service.check_in_guest(event_id, guest_id, account)
    return {"status": "success", "data": {"guest": serialize(guest)}}


@router.patch("/{event_id}/guests/{guest_id}/invitation")
def mark_invitation_sent(event_id: str, guest_id: str, payload: InvitationPayload,
                         account: Account = Depends(protect),
                         service: EventService = Depends(get_event_service)):
    guest = service.mark_invitation_sent(event_id, guest_id, payload.method, account)
    return {"status": "success", "data": {"guest": serialize(guest)}}
