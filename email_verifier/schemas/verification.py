"""Pydantic schemas for code issuance, verification and status lookups."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from email_verifier.services.codes import CODE_LENGTH

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{CODE_LENGTH}}}$")


class EmailRequest(BaseModel):
    """Payload carrying only the address; used by /generate and /status."""

    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.fullmatch(value):
            raise ValueError("Invalid email address")
        return value


class VerifyRequest(EmailRequest):
    """Payload used when submitting a received code for validation."""

    code: str

    @field_validator("code")
    @classmethod
    def _check_code(cls, value: str) -> str:
        if not CODE_PATTERN.fullmatch(value):
            raise ValueError("Invalid verification code format")
        return value


class GenerateData(BaseModel):
    email: str
    code: str | None = None


class VerifyData(BaseModel):
    email: str
    message: str


class StatusData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    is_verified: bool = Field(alias="isVerified")
    pending_verification: bool = Field(alias="pendingVerification")
    expires_at: int | None = Field(alias="expiresAt")
