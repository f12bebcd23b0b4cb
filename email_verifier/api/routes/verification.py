"""HTTP route handlers for code issuance, verification and status."""

from fastapi import APIRouter, Depends

from email_verifier.api import deps
from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.schemas import (
    ApiResponse,
    EmailRequest,
    GenerateData,
    StatusData,
    VerifyData,
    VerifyRequest,
)
from email_verifier.services.container import ServiceContainer
from email_verifier.services.verification import VerificationService

router = APIRouter(tags=["verification"])


@router.post(
    "/generate",
    response_model=ApiResponse[GenerateData],
    response_model_exclude_none=True,
    dependencies=[Depends(deps.enforce_rate_limit)],
)
async def generate_code(
    payload: EmailRequest,
    service: VerificationService = Depends(deps.get_verification_service),
    container: ServiceContainer = Depends(deps.get_container),
) -> ApiResponse[GenerateData]:
    """Issue a fresh code for the email, invalidating any earlier one."""

    code = await service.issue(payload.email)
    exposed = code if container.settings.EXPOSE_CODE_IN_RESPONSE else None
    return ApiResponse(data=GenerateData(email=payload.email, code=exposed))


@router.post("/verify", response_model=ApiResponse[VerifyData])
async def verify_code(
    payload: VerifyRequest,
    service: VerificationService = Depends(deps.get_verification_service),
) -> ApiResponse[VerifyData]:
    """Confirm an email address using the submitted code."""

    if not await service.verify(payload.email, payload.code):
        raise ServiceError(ErrorKind.NOT_FOUND_OR_INVALID, "Invalid or expired verification code")
    return ApiResponse(data=VerifyData(email=payload.email, message="Email verified successfully"))


@router.post("/status", response_model=ApiResponse[StatusData])
async def verification_status(
    payload: EmailRequest,
    service: VerificationService = Depends(deps.get_verification_service),
) -> ApiResponse[StatusData]:
    """Report whether the email is verified and whether a code is still live."""

    result = await service.status(payload.email)
    return ApiResponse(
        data=StatusData(
            email=payload.email,
            is_verified=result.is_verified,
            pending_verification=result.has_pending_code,
            expires_at=result.expires_at,
        )
    )
