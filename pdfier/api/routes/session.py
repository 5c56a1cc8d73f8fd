"""Session and authentication API routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pdfier.api.deps import get_services
from pdfier.client.auth import sign_in
from pdfier.factory import Services
from pdfier.session.context import restore_session

router = APIRouter(tags=["session"])


class LoginRequest(BaseModel):
    username: str
    password: str


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class VerifyRequest(BaseModel):
    user_id: str
    otp: str


class ResendOtpRequest(BaseModel):
    user_id: str
    email: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    user_id: str
    new_password: str
    confirm_password: str


class MessageResponse(BaseModel):
    message: Optional[str] = None
    user_id: Optional[str] = None


def _session_payload(services: Services) -> dict:
    return services.session.state.model_dump(mode="json", by_alias=True)


@router.get("/session")
async def get_session(services: Services = Depends(get_services)):
    """Current session state."""
    return _session_payload(services)


@router.post("/session/initialize")
async def initialize_session(services: Services = Depends(get_services)):
    """Recover the session from stored credentials, falling back to guest."""
    outcome = await restore_session(services.session)
    return {"outcome": outcome.value, "session": _session_payload(services)}


@router.post("/auth/login")
async def login(request: LoginRequest, services: Services = Depends(get_services)):
    await sign_in(services.session, services.auth, request.username, request.password)
    return {"message": "Login successful!", "session": _session_payload(services)}


@router.post("/auth/logout")
async def logout(services: Services = Depends(get_services)):
    services.session.logout()
    return {"message": "Logged out", "session": _session_payload(services)}


@router.post("/auth/signup", response_model=MessageResponse)
async def signup(request: SignupRequest, services: Services = Depends(get_services)):
    data = await services.auth.signup(request.username, request.email, request.password)
    return MessageResponse(
        message=data.get("message") or "Signup successful! Please verify your email with the OTP.",
        user_id=data.get("user_id"),
    )


@router.post("/auth/verify", response_model=MessageResponse)
async def verify(request: VerifyRequest, services: Services = Depends(get_services)):
    data = await services.auth.verify_otp(request.user_id, request.otp)
    return MessageResponse(message=data.get("message") or "Account verified successfully!")


@router.post("/auth/resend-otp", response_model=MessageResponse)
async def resend_otp(request: ResendOtpRequest, services: Services = Depends(get_services)):
    data = await services.auth.resend_otp(request.user_id, request.email)
    return MessageResponse(message=data.get("message") or "OTP resent successfully!")


@router.post("/auth/forgot", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest, services: Services = Depends(get_services)
):
    data = await services.auth.forgot_password(request.email)
    return MessageResponse(
        message=data.get("message") or "OTP sent to your email. Please check your inbox.",
        user_id=data.get("user_id"),
    )


@router.post("/auth/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest, services: Services = Depends(get_services)
):
    if request.new_password != request.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match.")
    data = await services.auth.reset_password(request.user_id, request.new_password)
    return MessageResponse(message=data.get("message") or "Password reset successful!")
