from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from pingwatch.config import get_settings
from pingwatch.schedule import validate_cron_expression

settings = get_settings()

HTTP_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
NOTIFY_STATUSES = ("up", "down", "grace")


# --- HTTP probe configuration ---

class HttpAuth(BaseModel):
    type: Literal["none", "basic", "bearer"] = "none"
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None


class HttpConfig(BaseModel):
    url: str
    method: str = "GET"
    success_codes: list[int] = Field(default_factory=lambda: [200, 201, 202, 204])
    params: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    auth: Optional[HttpAuth] = None

    @field_validator("url")
    @classmethod
    def url_valid(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        if len(v) > 2048:
            raise ValueError("URL must be at most 2048 characters")
        return v

    @field_validator("method")
    @classmethod
    def method_valid(cls, v: str) -> str:
        v = v.upper().strip()
        if v not in HTTP_METHODS:
            raise ValueError(f"Method must be one of: {', '.join(sorted(HTTP_METHODS))}")
        return v

    @field_validator("success_codes")
    @classmethod
    def success_codes_valid(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("At least one success code is required")
        for code in v:
            if code < 100 or code > 599:
                raise ValueError("Success codes must be between 100 and 599")
        return sorted(set(v))


# --- Check Schemas ---

def _clean_cron(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    return validate_cron_expression(v)


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Check name is required")
    if len(v) > 255:
        raise ValueError("Check name must be at most 255 characters")
    return v


class CheckCreate(BaseModel):
    name: str
    description: Optional[str] = None
    type: Literal["standard", "http_request"] = "standard"
    period: Optional[int] = None
    grace: int = settings.default_grace
    cron_expression: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    http_config: Optional[HttpConfig] = None
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("period")
    @classmethod
    def period_valid(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Period must be at least 1 minute")
        return v

    @field_validator("grace")
    @classmethod
    def grace_valid(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Grace must be at least 1 minute")
        return v

    @field_validator("cron_expression")
    @classmethod
    def cron_valid(cls, v: Optional[str]) -> Optional[str]:
        return _clean_cron(v)

    @model_validator(mode="after")
    def schedule_consistent(self) -> "CheckCreate":
        if self.cron_expression:
            self.period = 0
        elif self.period is None:
            self.period = settings.default_period
        if self.type == "http_request" and self.http_config is None:
            raise ValueError("HTTP request checks need an http_config")
        return self


class CheckUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[Literal["standard", "http_request"]] = None
    period: Optional[int] = None
    grace: Optional[int] = None
    cron_expression: Optional[str] = None
    tags: Optional[list[str]] = None
    http_config: Optional[HttpConfig] = None
    enabled: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = _clean_name(v)
        return v

    @field_validator("period")
    @classmethod
    def period_valid(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Period must be at least 1 minute")
        return v

    @field_validator("grace")
    @classmethod
    def grace_valid(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Grace must be at least 1 minute")
        return v

    @field_validator("cron_expression")
    @classmethod
    def cron_valid(cls, v: Optional[str]) -> Optional[str]:
        return _clean_cron(v)


class CheckResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: str
    period: int
    grace: int
    cron_expression: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    http_config: Optional[dict] = None
    enabled: bool = True
    status: str
    last_ping: Optional[datetime] = None
    next_ping_due: Optional[datetime] = None
    last_duration: Optional[float] = None
    ping_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CheckStatusResponse(BaseModel):
    check_id: str
    status: str
    stored_status: str
    last_ping: Optional[datetime] = None
    next_ping_due: Optional[datetime] = None
    evaluated_at: datetime


class PingResponse(BaseModel):
    id: str
    check_id: str
    timestamp: datetime
    status: str
    response_code: Optional[int] = None
    method: Optional[str] = None
    request_url: Optional[str] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class PingReceipt(BaseModel):
    check_id: str
    status: str
    recorded: bool
    message: str


# --- Integration Schemas ---

class IntegrationConfig(BaseModel):
    url: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("url")
    @classmethod
    def url_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            if not v.startswith(("http://", "https://")):
                raise ValueError("URL must start with http:// or https://")
        return v


def _clean_notify_on(v: list[str]) -> list[str]:
    if not v:
        raise ValueError("Select at least one status to notify on")
    for status in v:
        if status not in NOTIFY_STATUSES:
            raise ValueError(f"notify_on values must be in: {', '.join(NOTIFY_STATUSES)}")
    return [s for s in NOTIFY_STATUSES if s in v]


class IntegrationCreate(BaseModel):
    type: Literal["webhook", "email"]
    name: str
    config: IntegrationConfig = Field(default_factory=IntegrationConfig)
    notify_on: list[str] = Field(default_factory=lambda: ["down"])
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Integration name is required")
        if len(v) > 100:
            raise ValueError("Integration name must be at most 100 characters")
        return v

    @field_validator("notify_on")
    @classmethod
    def notify_on_valid(cls, v: list[str]) -> list[str]:
        return _clean_notify_on(v)

    @model_validator(mode="after")
    def target_present(self) -> "IntegrationCreate":
        if self.type == "webhook" and not self.config.url:
            raise ValueError("Webhook integrations need config.url")
        if self.type == "email" and not self.config.email:
            raise ValueError("Email integrations need config.email")
        return self


class IntegrationUpdate(BaseModel):
    name: Optional[str] = None
    config: Optional[IntegrationConfig] = None
    notify_on: Optional[list[str]] = None
    enabled: Optional[bool] = None

    @field_validator("notify_on")
    @classmethod
    def notify_on_valid(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is not None:
            v = _clean_notify_on(v)
        return v


class IntegrationResponse(BaseModel):
    id: str
    check_id: str
    type: str
    name: str
    config: dict
    notify_on: list[str]
    enabled: bool
    created_at: datetime

    model_config = {"from_attributes": True}
