# servxpert/schemas/auth/auth.py
from pydantic import BaseModel, Field
from typing import Optional, Literal

class SendOTPRequest(BaseModel):
    destination: str = Field(..., description="Phone number (E.164 or 10-digit national) or email address")
    method: Optional[Literal["phone", "email"]] = Field(None, description="Inferred from the destination when omitted")

class SendOTPResponse(BaseModel):
    success: bool = True
    message: str
    expiresIn: int

class VerifyOTPRequest(BaseModel):
    destination: str = Field(..., description="Same destination the code was sent to")
    code: str = Field(..., description="6-digit code")

class VerifyOTPResponse(BaseModel):
    success: bool = True
    message: str = "OTP verified successfully"
    userId: str
    isNewUser: bool
    session: Optional[str] = None
    sessionType: str
    profileComplete: bool
    role: Optional[str] = None
    redirectTo: Optional[str] = None

class CompleteProfileRequest(BaseModel):
    name: str = Field(..., max_length=100)
    role: Literal["customer", "worker"] = "customer"
    contact: Optional[str] = Field(None, description="Secondary phone (email signups) or email (phone signups)")

class SessionResponse(BaseModel):
    success: bool = True
    userId: str
    session: str
    role: str
    redirectTo: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    contactPhone: Optional[str] = None
    contactEmail: Optional[str] = None
    role: Optional[str] = None
    profileComplete: bool
    redirectTo: Optional[str] = None

class AssignRoleRequest(BaseModel):
    role: Literal["customer", "worker", "admin"]
