"""
Database Schemas for the event-management backend

Each Pydantic model maps to a MongoDB collection with the lowercase class name:
- Host -> "host"
- Vendor -> "vendor"
- WhiteLabel -> "whitelabel"
- Otp -> "otp"
- Event -> "event"
- Guest -> "guest"
- NotificationPreferences -> "notificationpreferences"

Nested models describe embedded sub-documents. They are also used to
validate the JSON sections that arrive as multipart string fields.

Otp, Guest and NotificationPreferences build the documents that get
inserted. Event only describes the stored shape: events.py assembles it
from the separately validated sections.
"""
import re
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

HEX_COLOR = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
GUEST_PHONE = re.compile(r"^\+?[1-9]\d{0,15}$")
GUEST_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EventType = Literal["wedding", "birthday", "graduation", "meeting", "conference", "other"]
EventStatus = Literal["draft", "published", "ongoing", "completed", "cancelled"]
GuestStatus = Literal["invited", "confirmed", "declined", "attended", "no-response"]
InvitationMethod = Literal["email", "sms", "whatsapp"]
OtpUserType = Literal["host", "vendor", "signup"]

EVENT_STATUSES = ("draft", "published", "ongoing", "completed", "cancelled")
GUEST_STATUSES = ("invited", "confirmed", "declined", "attended", "no-response")


def _non_empty(values: List[str], message: str) -> List[str]:
    if not values:
        raise ValueError(message)
    return values


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class Credentials(BaseModel):
    password_hash: Optional[str] = Field(None, description="BCrypt password hash (server-side only)")
    password_changed_at: Optional[datetime] = None
    password_reset_token: Optional[str] = Field(None, description="sha256 of the emailed reset token")
    password_reset_expires: Optional[datetime] = None


class Host(Credentials):
    """Primary tenant. Email and password may be absent until the profile is completed."""
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: str = Field(..., min_length=1)
    email_verified: bool = False
    profile_completed: bool = False
    role: str = "host"


class VendorIdentity(BaseModel):
    brand_name: str = Field(..., min_length=2, max_length=50)
    owner_full_name: str = Field(..., min_length=2, max_length=100)
    service_type: List[str]
    phone_number: str = Field(..., min_length=10)
    email: EmailStr

    @field_validator("service_type")
    @classmethod
    def _service_type(cls, v):
        return _non_empty(v, "At least one service type is required")

    @field_validator("email")
    @classmethod
    def _lower(cls, v):
        return v.lower()


class VendorServiceData(BaseModel):
    service_description: str = Field(..., min_length=10, max_length=500)
    event_planning: List[str] = []
    media_production: List[str] = []
    gifts_and_giveaways: List[str] = []
    food_and_beverages: List[str] = []
    beauty_and_fashion: List[str] = []
    logistics_and_delivery: List[str] = []
    corporate_services: List[str] = []
    city: str = Field(..., min_length=2)
    coverage_area: List[str]
    other_data: Optional[str] = None

    @field_validator("coverage_area")
    @classmethod
    def _coverage(cls, v):
        return _non_empty(v, "Coverage area is required")


class VendorSamples(BaseModel):
    portfolio_images: List[str]
    business_logo: Optional[str] = None
    price_packages: List[str]

    @field_validator("portfolio_images")
    @classmethod
    def _portfolio(cls, v):
        return _non_empty(v, "At least one portfolio image is required")

    @field_validator("price_packages")
    @classmethod
    def _packages(cls, v):
        return _non_empty(v, "At least one price package is required")


class VendorCommercialVerification(BaseModel):
    commercial_record: Optional[str] = None
    national_id: str = Field(..., min_length=1)


class VendorPaymentData(BaseModel):
    terms_for_refund: Optional[str] = None
    payment_options: List[str] = []


class VendorLinks(BaseModel):
    instagram_link: Optional[str] = None
    linkedin_link: Optional[str] = None
    website_link: Optional[str] = None
    additional_services: Optional[str] = None
    cv: Optional[str] = None
    profile_file: Optional[str] = None


class Vendor(Credentials):
    identity: VendorIdentity
    service_data: VendorServiceData
    samples_and_packages: VendorSamples
    commercial_verification: VendorCommercialVerification
    payment_data: VendorPaymentData = VendorPaymentData()
    other_links_and_data: VendorLinks = VendorLinks()
    active: bool = True
    role: str = "vendor"


class WhiteLabelIdentity(BaseModel):
    arabic_name: str = Field(..., min_length=2, max_length=50)
    english_name: str = Field(..., min_length=2, max_length=50)
    logo: str = Field(..., min_length=1, description="Uploaded logo path")
    primary_color: str
    secondary_color: str
    font_family: Optional[str] = None

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def _hex(cls, v):
        if not HEX_COLOR.match(v):
            raise ValueError("Color must be a valid hex color code")
        return v


class WhiteLabelLoginData(BaseModel):
    email: EmailStr
    domain: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower(cls, v):
        return v.lower()


class WhiteLabelSystemRequirements(BaseModel):
    number_of_events: str
    number_of_guests_per_event: str
    events_types: List[str]
    services: List[str]

    @field_validator("number_of_events", "number_of_guests_per_event")
    @classmethod
    def _positive(cls, v):
        if not v.isdigit() or int(v) <= 0:
            raise ValueError("Must be a positive number")
        return v

    @field_validator("events_types")
    @classmethod
    def _events_types(cls, v):
        return _non_empty(v, "At least one event type must be selected")

    @field_validator("services")
    @classmethod
    def _services(cls, v):
        return _non_empty(v, "At least one service must be selected")


class WhiteLabelPaymentData(BaseModel):
    company_name: str = Field(..., min_length=1)
    license_number: str = Field(..., min_length=1)
    tax_number: Optional[str] = None
    city: str = Field(..., min_length=1)
    neighborhood: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    building_number: str = Field(..., min_length=1)
    additional_number: str = Field(..., min_length=1)
    place_type: Optional[str] = None
    place_number: Optional[str] = None
    payment_method: List[str]

    @field_validator("payment_method")
    @classmethod
    def _methods(cls, v):
        return _non_empty(v, "At least one payment method must be selected")


class WhiteLabel(Credentials):
    """Reseller partner. Registration only."""
    username: str = Field(..., min_length=1)
    email: EmailStr
    phone_number: str = Field(..., min_length=1)
    identity: WhiteLabelIdentity
    login_data: WhiteLabelLoginData
    system_requirements: WhiteLabelSystemRequirements
    additional_services: List[str] = []
    payment_data: WhiteLabelPaymentData
    role: str = "whitelabel"


class Otp(BaseModel):
    phone_number: str
    otp_code: str = Field(..., pattern=r"^\d{6}$")
    user_type: OtpUserType
    user_id: Optional[str] = None
    attempts: int = 0
    expires_at: datetime


# ---------------------------------------------------------------------------
# Events and guests
# ---------------------------------------------------------------------------

class Location(BaseModel):
    address: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    city: Optional[str] = None
    country: Optional[str] = None


class EventDetails(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    type: Optional[EventType] = None
    date: Optional[datetime] = None
    time: Optional[str] = None
    location: Optional[Location] = None
    description: Optional[str] = Field(None, max_length=1000)


class Supervisor(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=10)


class TemplateColors(BaseModel):
    primary: Optional[str] = None
    secondary: Optional[str] = None
    accent: Optional[str] = None


class Template(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    image: Optional[str] = None
    colors: Optional[TemplateColors] = None


class InvitationSettings(BaseModel):
    selected_template: Optional[Template] = None
    invitation_message: Optional[str] = None
    attendance_auto_reply: Optional[str] = None
    absence_auto_reply: Optional[str] = None
    expected_attendance_auto_reply: Optional[str] = None
    template_image: Optional[str] = None
    note: Optional[str] = None


class LaunchSettings(BaseModel):
    send_schedule: Literal["now", "later"] = "now"
    scheduled_date: Optional[datetime] = None
    scheduled_time: Optional[str] = None


class GuestStats(BaseModel):
    total_invited: int = 0
    total_confirmed: int = 0
    total_attended: int = 0


class Event(BaseModel):
    event_details: EventDetails
    guest_list: List[str] = []
    supervisors_list: List[Supervisor] = []
    invitation_settings: Optional[InvitationSettings] = None
    launch_settings: Optional[LaunchSettings] = None
    host: str
    status: EventStatus = "draft"
    guest_stats: GuestStats = GuestStats()


class GuestContact(BaseModel):
    """Name plus at least one of phone or email."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        if v and not GUEST_PHONE.match(v):
            raise ValueError("Please provide a valid phone number")
        return v or None

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        if v and not GUEST_EMAIL.match(v):
            raise ValueError("Please provide a valid email address")
        return v.lower() if v else None

    @model_validator(mode="after")
    def _contact(self):
        if not self.phone and not self.email:
            raise ValueError("Either phone number or email address is required")
        return self


class GuestEntry(GuestContact):
    """One row of a submitted guest list; ``id`` is set for guests that already exist."""
    id: Optional[str] = None
    invited_by: Optional[str] = None

    @field_validator("invited_by")
    @classmethod
    def _invited_by(cls, v):
        if v and not ObjectId.is_valid(v):
            raise ValueError(f"Invalid invited_by: {v}")
        return v or None


class RSVP(BaseModel):
    responded: bool = False
    responded_at: Optional[datetime] = None


class CheckIn(BaseModel):
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None


class Invitation(BaseModel):
    sent: bool = False
    sent_at: Optional[datetime] = None
    method: Optional[InvitationMethod] = None


class Guest(GuestContact):
    event: str
    qrcode: Optional[str] = None
    status: GuestStatus = "invited"
    invited_by: Optional[str] = None
    rsvp: RSVP = RSVP()
    check_in: CheckIn = CheckIn()
    invitation: Invitation = Invitation()


# ---------------------------------------------------------------------------
# Notification preferences
# ---------------------------------------------------------------------------

class AppNotifications(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_updates: bool = True
    event_dates: bool = True
    package_renewal: bool = True
    system_interactions: bool = True


class EmailNotifications(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_updates: bool = False
    event_dates: bool = False
    package_renewal: bool = False
    before_sending_invitations: bool = False
    after_sending_invitations: bool = False


class NotificationPreferences(BaseModel):
    host: str
    app_notifications: AppNotifications = AppNotifications()
    email_notifications: EmailNotifications = EmailNotifications()
