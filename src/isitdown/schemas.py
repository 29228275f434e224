import re
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, field_validator, model_validator

from isitdown.urls import format_url

WebsiteStatusValue = Literal["up", "down", "unknown"]
IncidentType = Literal["down", "slow", "intermittent", "partial", "metoo"]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Auth Schemas ---

def check_password(v: str) -> str:
    # bcrypt only looks at the first 72 bytes
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(v) > 72:
        raise ValueError("Password must be at most 72 characters")
    return v


class SignupRequest(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def username_valid(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Username must be at most 50 characters")
        if not re.match(r"^[A-Za-z0-9_.-]+$", v):
            raise ValueError("Username may only contain letters, numbers, dots, dashes and underscores")
        return v

    @field_validator("password")
    @classmethod
    def password_strong_enough(cls, v: str) -> str:
        return check_password(v)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    notifications_enabled: bool
    email_alerts: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    message: str
    user: UserResponse


class PreferencesUpdate(BaseModel):
    notifications_enabled: Optional[bool] = None
    email_alerts: Optional[bool] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    password: str

    @field_validator("password")
    @classmethod
    def password_strong_enough(cls, v: str) -> str:
        return check_password(v)


# --- Website Schemas ---

class WebsiteCheckRequest(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def url_valid(cls, v: str) -> str:
        if len(v) > 2048:
            raise ValueError("URL must be at most 2048 characters")
        # InvalidURLError is a ValueError, so it surfaces as a 422
        return format_url(v)


class WebsiteResponse(BaseModel):
    id: str
    url: str
    name: Optional[str] = None
    status: WebsiteStatusValue = "unknown"
    last_checked: Optional[datetime] = None
    response_time: Optional[int] = None
    user_reported: bool = False
    incident_type: Optional[IncidentType] = None
    report_count: Optional[int] = None
    report_timestamp: Optional[datetime] = None
    effective_status: Optional[WebsiteStatusValue] = None

    model_config = {"from_attributes": True}

    @field_validator("last_checked", "report_timestamp")
    @classmethod
    def utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def default_effective_status(self) -> "WebsiteResponse":
        if self.effective_status is None:
            self.effective_status = self.status
        return self


# --- Incident Schemas ---

class Location(BaseModel):
    city: str
    country: str


class IncidentCreate(BaseModel):
    website_id: str
    website_url: str
    type: IncidentType
    timestamp: Optional[datetime] = None
    location_city: Optional[str] = None
    location_country: Optional[str] = None
    related_incident_id: Optional[str] = None

    @field_validator("website_id")
    @classmethod
    def website_id_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Website id is required")
        return v

    @field_validator("timestamp")
    @classmethod
    def utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class IncidentResponse(BaseModel):
    id: str
    website_id: str
    website_url: str
    type: IncidentType
    timestamp: datetime
    ip_address: str
    location: Optional[Location] = None
    me_too_count: int = 0
    related_incident_id: Optional[str] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def location_from_row(cls, data):
        # ORM rows carry the location as two flat columns
        if not isinstance(data, dict) and hasattr(data, "location_city"):
            city, country = data.location_city, data.location_country
            return {
                "id": data.id,
                "website_id": data.website_id,
                "website_url": data.website_url,
                "type": data.type,
                "timestamp": data.timestamp,
                "ip_address": data.ip_address or "",
                "location": {"city": city, "country": country} if city and country else None,
                "me_too_count": data.me_too_count or 0,
                "related_incident_id": data.related_incident_id,
            }
        return data

    @field_validator("timestamp")
    @classmethod
    def utc(cls, v: datetime) -> datetime:
        return as_utc(v)


# --- Outage Report Schemas ---

class OutageReportCreate(BaseModel):
    website_id: str
    latitude: float
    longitude: float
    status: Literal["up", "down"] = "down"
    location_city: Optional[str] = None
    location_country: Optional[str] = None

    @field_validator("latitude")
    @classmethod
    def latitude_valid(cls, v: float) -> float:
        if v < -90 or v > 90:
            raise ValueError("Latitude must be between -90 and 90")
        return v

    @field_validator("longitude")
    @classmethod
    def longitude_valid(cls, v: float) -> float:
        if v < -180 or v > 180:
            raise ValueError("Longitude must be between -180 and 180")
        return v


class OutageReportResponse(BaseModel):
    id: str
    website_id: str
    latitude: float
    longitude: float
    timestamp: datetime
    status: Literal["up", "down"]
    location_city: Optional[str] = None
    location_country: Optional[str] = None
    report_count: int = 1

    model_config = {"from_attributes": True}

    @field_validator("timestamp")
    @classmethod
    def utc(cls, v: datetime) -> datetime:
        return as_utc(v)


# --- Monitoring Schemas ---

class MonitoringStatusResponse(BaseModel):
    is_running: bool
    website_count: int
    current_index: int
    skipped_cycles: int = 0
