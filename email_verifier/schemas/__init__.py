from email_verifier.schemas.common import ApiResponse, ErrorResponse, HealthResponse
from email_verifier.schemas.verification import (
    EmailRequest,
    GenerateData,
    StatusData,
    VerifyData,
    VerifyRequest,
)

__all__ = [
    "ApiResponse",
    "EmailRequest",
    "ErrorResponse",
    "GenerateData",
    "HealthResponse",
    "StatusData",
    "VerifyData",
    "VerifyRequest",
]
