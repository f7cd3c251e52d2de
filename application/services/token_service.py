"""
令牌服务 - 为受信任的调用方签发服务令牌（client credentials）
"""
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from application.dtos.payments import TokenRequest, TokenResponse
from core.config import settings
from core.exceptions import UnauthorizedException, TokenExpiredException
from core.logging_config import get_logger


logger = get_logger(__name__)


class TokenService:
    """
    服务令牌

    1. 凭据与配置的 ALLOWED_CLIENT_ID / ALLOWED_CLIENT_SECRET 做常量时间比较
    2. 签发 HS256 JWT，type=service
    """

    def __init__(
        self,
        *,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self._client_id = client_id if client_id is not None else settings.ALLOWED_CLIENT_ID
        self._client_secret = client_secret if client_secret is not None else settings.ALLOWED_CLIENT_SECRET
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM
        self._expire_minutes = expire_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def _credentials_match(self, client_id: str, client_secret: str) -> bool:
        if not self._client_id or not self._client_secret:
            return False
        # 两项都比较，避免短路泄露哪一项错误
        id_ok = hmac.compare_digest(client_id.encode(), self._client_id.encode())
        secret_ok = hmac.compare_digest(client_secret.encode(), self._client_secret.encode())
        return id_ok and secret_ok

    def issue_token(self, req: TokenRequest) -> TokenResponse:
        """校验凭据并签发服务令牌"""
        if not self._credentials_match(req.client_id, req.client_secret):
            logger.warning("service_token_rejected", client_id=req.client_id)
            raise UnauthorizedException("Invalid client credentials")

        expire = datetime.now(timezone.utc) + timedelta(minutes=self._expire_minutes)
        to_encode = {
            "sub": req.client_id,
            "exp": expire,
            "type": "service",
            "jti": str(uuid.uuid4()),
        }
        token = jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)
        logger.info("service_token_issued", client_id=req.client_id)
        return TokenResponse(token=token, expires_in=self._expire_minutes * 60)

    def verify_token(self, token: str) -> str:
        """校验服务令牌并返回 client id

        - 过期：TokenExpiredException
        - 无效或类型错误：UnauthorizedException
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.PyJWTError as e:
            logger.warning("invalid_service_token", error=str(e))
            raise UnauthorizedException("Invalid token")

        if payload.get("type") != "service" or not payload.get("sub"):
            raise UnauthorizedException("Invalid token type")
        return str(payload["sub"])
