import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import BaseModel, EmailStr

from credentials import CredentialStore, check_new_password, get_credential_store, hash_reset_token
from database import serialize
from errors import AuthenticationError, ConflictError, DependencyError, NotFoundError, ValidationError
from forms import parse_json_field
from guard import is_logged_in, protect
from identity import Account, AccountKind, IdentityResolver, get_identity_resolver
from messaging import Messenger, get_messenger
from otp import OtpLedger, get_otp_ledger
from registration import RegistrationService, get_registration_service
from schemas import Vendor, WhiteLabel
from sessions import SessionIssuer, get_session_issuer
from settings import Settings, get_settings
from uploads import UploadStore, get_upload_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

JsonObject = Dict[str, Any]


# Payloads
class HostSignupPayload(BaseModel):
    phone_number: str
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class CompleteProfilePayload(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class LoginPayload(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SendOtpPayload(BaseModel):
    phone_number: Optional[str] = None
    type: Optional[str] = None


class VerifyOtpPayload(BaseModel):
    phone_number: Optional[str] = None
    otp_code: Optional[Union[str, int]] = None


class ForgotPasswordPayload(BaseModel):
    email: Optional[str] = None


class ResetPasswordPayload(BaseModel):
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class UpdatePasswordPayload(BaseModel):
    password_current: Optional[str] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None


def send_session(account: Account, response: Response, sessions: SessionIssuer) -> dict:
    token = sessions.issue(account.id)
    sessions.attach(response, token)
    return {
        "status": "success",
        "token": token,
        "user_type": account.kind.value,
        "data": {"user": serialize(account.doc)},
    }


# Signup
@router.post("/signup/host", status_code=201)
def signup_host(
    payload: HostSignupPayload,
    response: Response,
    registration: RegistrationService = Depends(get_registration_service),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    account = registration.signup_host(
        payload.phone_number, payload.username, payload.email, payload.password, payload.password_confirm
    )
    return send_session(account, response, sessions)


@router.patch("/complete-host-profile")
def complete_host_profile(
    payload: CompleteProfilePayload,
    response: Response,
    account: Account = Depends(protect),
    registration: RegistrationService = Depends(get_registration_service),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    account = registration.complete_host_profile(
        account, payload.username, payload.email, payload.password, payload.password_confirm
    )
    return send_session(account, response, sessions)


@router.post("/signup/vendor", status_code=201)
def signup_vendor(
    identity: str = Form(...),
    service_data: str = Form(...),
    commercial_verification: str = Form(...),
    password: str = Form(...),
    password_confirm: str = Form(...),
    payment_data: Optional[str] = Form(None),
    other_links_and_data: Optional[str] = Form(None),
    portfolio_images: Optional[List[UploadFile]] = File(None),
    business_logo: Optional[UploadFile] = File(None),
    price_packages: Optional[List[UploadFile]] = File(None),
    commercial_record: Optional[UploadFile] = File(None),
    cv: Optional[UploadFile] = File(None),
    profile_file: Optional[UploadFile] = File(None),
    registration: RegistrationService = Depends(get_registration_service),
    uploads: UploadStore = Depends(get_upload_store),
):
    identity_data = parse_json_field(identity, JsonObject, "identity")
    service = parse_json_field(service_data, JsonObject, "service_data")
    verification = parse_json_field(commercial_verification, JsonObject, "commercial_verification")
    payment = parse_json_field(payment_data, JsonObject, "payment_data") or {}
    links = parse_json_field(other_links_and_data, JsonObject, "other_links_and_data") or {}
    registration.ensure_vendor_available(identity_data.get("email"), identity_data.get("phone_number"))

    saved: List[str] = []

    def store_one(upload, field):
        path = uploads.save_optional(upload, field)
        if path:
            saved.append(path)
        return path

    def store_many(files, field):
        return [store_one(f, field) for f in (files or []) if f.filename]

    try:
        samples = {
            "portfolio_images": store_many(portfolio_images, "portfolio_images"),
            "business_logo": store_one(business_logo, "business_logo"),
            "price_packages": store_many(price_packages, "price_packages"),
        }
        verification["commercial_record"] = store_one(commercial_record, "commercial_record")
        links["cv"] = store_one(cv, "cv")
        links["profile_file"] = store_one(profile_file, "profile_file")
        vendor = Vendor(
            identity=identity_data,
            service_data=service,
            samples_and_packages=samples,
            commercial_verification=verification,
            payment_data=payment,
            other_links_and_data=links,
        )
        registration.signup_vendor(vendor, password, password_confirm)
    except Exception:
        for path in saved:
            uploads.delete(path)
        raise

    return {"status": "success", "message": "Vendor account created successfully"}


@router.post("/signup/whitelabel", status_code=201)
def signup_whitelabel(
    username: str = Form(...),
    email: str = Form(...),
    phone_number: str = Form(...),
    password: str = Form(...),
    password_confirm: str = Form(...),
    identity: str = Form(...),
    login_data: str = Form(...),
    system_requirements: str = Form(...),
    payment_data: str = Form(...),
    additional_services: Optional[str] = Form(None),
    logo: UploadFile = File(...),
    registration: RegistrationService = Depends(get_registration_service),
    uploads: UploadStore = Depends(get_upload_store),
):
    identity_data = parse_json_field(identity, JsonObject, "identity")
    login = parse_json_field(login_data, JsonObject, "login_data")
    requirements = parse_json_field(system_requirements, JsonObject, "system_requirements")
    payment = parse_json_field(payment_data, JsonObject, "payment_data")
    extras = parse_json_field(additional_services, List[str], "additional_services") or []
    registration.ensure_whitelabel_available(email, phone_number)

    logo_path = uploads.save(logo, "logo")
    try:
        whitelabel = WhiteLabel(
            username=username,
            email=email,
            phone_number=phone_number,
            identity={**identity_data, "logo": logo_path},
            login_data=login,
            system_requirements=requirements,
            additional_services=extras,
            payment_data=payment,
        )
        registration.signup_whitelabel(whitelabel, password, password_confirm)
    except Exception:
        uploads.delete(logo_path)
        raise

    return {"status": "success", "message": "WhiteLabel account created successfully"}


# Login
@router.post("/login")
def login(
    payload: LoginPayload,
    response: Response,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    credentials: CredentialStore = Depends(get_credential_store),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    if not payload.email or not payload.password:
        raise ValidationError("Please provide email and password")
    account = resolver.find_by_email(payload.email)
    if account is None or not credentials.verify(payload.password, account.password_hash):
        raise AuthenticationError("Incorrect email or password")
    return send_session(account, response, sessions)


@router.post("/send-otp")
def send_otp(
    payload: SendOtpPayload,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    ledger: OtpLedger = Depends(get_otp_ledger),
    messenger: Messenger = Depends(get_messenger),
    settings: Settings = Depends(get_settings),
):
    phone_number = payload.phone_number
    if not phone_number:
        raise ValidationError("Please provide phone number")
    if payload.type not in ("login", "signup"):
        raise ValidationError("Please provide valid purpose (login or signup)")

    account = resolver.find_by_phone(phone_number)
    if payload.type == "login":
        if account is None:
            raise NotFoundError("No account found with this phone number")
        code = ledger.issue(phone_number, account.kind.value, account.id)
    else:
        if account is not None:
            raise ConflictError("Phone number already registered. Please use login instead.")
        code = ledger.issue(phone_number, "signup")

    minutes = max(settings.otp_ttl_seconds // 60, 1)
    try:
        messenger.send_sms(phone_number, f"Your OTP code is: {code}. Valid for {minutes} minutes.")
    except DependencyError:
        ledger.discard(phone_number)
        logger.warning("Discarded OTP for %s after SMS failure", phone_number)
        raise DependencyError("There was an error sending the OTP. Try again later!")

    return {"status": "success", "message": "OTP sent successfully to your phone number", "type": payload.type}


@router.post("/verify-otp")
def verify_otp(
    payload: VerifyOtpPayload,
    response: Response,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    ledger: OtpLedger = Depends(get_otp_ledger),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    if not payload.phone_number or not payload.otp_code:
        raise ValidationError("Please provide phone number and OTP code")

    record = ledger.verify(payload.phone_number, payload.otp_code)
    if record is None:
        raise ValidationError("Invalid or expired OTP")

    if record["user_type"] == "signup":
        return {
            "status": "success",
            "message": "Phone number verified successfully",
            "phone_number": payload.phone_number,
            "verified": True,
        }

    account = resolver.find_by_id(record.get("user_id"), AccountKind(record["user_type"]))
    if account is None:
        raise NotFoundError("User not found")
    return send_session(account, response, sessions)


@router.get("/logout")
def logout(response: Response, sessions: SessionIssuer = Depends(get_session_issuer)):
    sessions.clear(response)
    return {"status": "success"}


@router.get("/me")
def current_user(account: Optional[Account] = Depends(is_logged_in)):
    user = serialize(account.doc) if account else None
    return {"status": "success", "data": {"user": user}}


# Passwords
@router.post("/forgotPassword")
def forgot_password(
    payload: ForgotPasswordPayload,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    credentials: CredentialStore = Depends(get_credential_store),
    messenger: Messenger = Depends(get_messenger),
    settings: Settings = Depends(get_settings),
):
    account = resolver.find_by_email(payload.email)
    if account is None:
        raise NotFoundError("There is no user with email address.")

    reset_token = credentials.issue_reset_token(account)
    reset_url = f"{settings.frontend_url}/changePassword?token={reset_token}"
    try:
        messenger.send_email(
            account.email,
            f"Your password reset token (valid for {settings.password_reset_ttl_minutes} min)",
            reset_url,
        )
    except DependencyError:
        credentials.clear_reset_token(account)
        raise DependencyError("There was an error sending the email. Try again later!")

    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/resetPassword/{token}")
def reset_password(
    token: str,
    payload: ResetPasswordPayload,
    response: Response,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    credentials: CredentialStore = Depends(get_credential_store),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    account = resolver.find_by_reset_token(hash_reset_token(token))
    if account is None:
        raise ValidationError("Token is invalid or has expired")
    password = check_new_password(payload.password, payload.password_confirm)
    account = credentials.set_password(account, password)
    return send_session(account, response, sessions)


@router.patch("/updateMyPassword")
def update_password(
    payload: UpdatePasswordPayload,
    response: Response,
    account: Account = Depends(protect),
    credentials: CredentialStore = Depends(get_credential_store),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    if not credentials.verify(payload.password_current, account.password_hash):
        raise AuthenticationError("Your current password is wrong.")
    password = check_new_password(payload.password, payload.password_confirm)
    account = credentials.set_password(account, password)
    return send_session(account, response, sessions)
