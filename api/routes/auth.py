"""
Service token endpoint (client credentials).
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import enforce_rate_limit, get_token_service
from application.dtos.payments import TokenRequest
from application.services.token_service import TokenService
from core.response import success_response


router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/token", summary="Issue service token", dependencies=[Depends(enforce_rate_limit)])
async def issue_token(payload: TokenRequest, tokens: TokenService = Depends(get_token_service)):
    result = tokens.issue_token(payload)
    return success_response(data=result.model_dump(mode="json", by_alias=True), message="Token issued")
