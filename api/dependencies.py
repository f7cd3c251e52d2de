"""
API依赖项 - 从 app.state 取组件、服务令牌认证与限流
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from api.middleware.request_id import resolve_client_ip
from application.ports.throttling import RateLimiter
from application.services.checkout_service import CheckoutService
from application.services.payment_status_service import PaymentStatusService
from application.services.reconciliation_service import WebhookReconciler
from application.services.token_service import TokenService
from core.exceptions import RateLimitException, UnauthorizedException
from core.logging_config import get_logger


logger = get_logger(__name__)

http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="Service token issued by POST /auth/token",
    auto_error=False,
)


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_status_service(request: Request) -> PaymentStatusService:
    return request.app.state.status_service


def get_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.reconciler


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_rate_limiter(request: Request) -> Optional[RateLimiter]:
    return getattr(request.app.state, "rate_limiter", None)


async def require_service_token(
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """校验 Bearer 服务令牌，返回 client id"""
    if bearer is None or not bearer.credentials:
        raise UnauthorizedException("Missing bearer token")
    return tokens.verify_token(bearer.credentials)


async def enforce_rate_limit(
    request: Request,
    limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
) -> None:
    """按客户端IP + 路径的固定窗口限流，超限抛 429"""
    if limiter is None:
        return
    client_ip = getattr(request.state, "client_ip", None) or resolve_client_ip(request)
    decision = await limiter.hit(f"{client_ip}:{request.url.path}")
    if not decision.allowed:
        logger.warning("rate_limit_exceeded", client_ip=client_ip, limit=decision.limit, retry_after=decision.retry_after)
        raise RateLimitException(retry_after=decision.retry_after)
