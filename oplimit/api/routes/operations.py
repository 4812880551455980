from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Path, Request

from oplimit.core.auth import verify_api_key
from oplimit.core.config import settings
from oplimit.core.rate_limit import (
    build_caller_identity,
    check_operation_in_executor,
    enforce_rate_limit,
    get_rate_limiter,
)
from oplimit.schemas.operations import LimiterConfigResponse, OperationCheckResponse

router = APIRouter(tags=["Operations"])


@router.post(
    "/operations/{op_name}/check",
    response_model=OperationCheckResponse,
    dependencies=[Depends(verify_api_key)],
)
async def check_operation_quota(
    request: Request,
    op_name: Annotated[str, Path(min_length=1, max_length=128)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> OperationCheckResponse:
    """Check and record one use of an operation for the calling client.

    Quotas are tracked per caller (API key or client IP) and operation name.
    An exceeded answer is a normal 200 response; callers decide what to do
    with it. Store failures surface as 503 unless the service fails open.

    Args:
        request: FastAPI request.
        op_name: Name of the rate-limited operation.
        x_api_key: API key from X-API-Key header.

    Returns:
        OperationCheckResponse: The decision and the active limit.
    """
    limiter = get_rate_limiter()
    identity = build_caller_identity(request, x_api_key)
    exceeded = await check_operation_in_executor(limiter, f"{identity}:{op_name}")

    return OperationCheckResponse(
        operation=op_name,
        exceeded=exceeded,
        limit=limiter.max_operations,
        period_seconds=limiter.period.total_seconds(),
        retry_after_seconds=limiter.seconds_until_reset() if exceeded else None,
    )


@router.get(
    "/limits",
    response_model=LimiterConfigResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def describe_limits() -> LimiterConfigResponse:
    """Describe the active limiter configuration (itself rate limited)."""
    limiter = get_rate_limiter()
    return LimiterConfigResponse(
        enabled=settings.app.rate_limit_enabled,
        limit=limiter.max_operations,
        period_seconds=limiter.period.total_seconds(),
        bucket_mode=limiter.bucket_mode,
        strict=limiter.strict,
        fail_open=settings.app.rate_limit_fail_open,
        store_backend=settings.store.backend,
    )
