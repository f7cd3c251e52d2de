"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api.routes import auth as auth_routes
from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.services.checkout_service import CheckoutService
from application.services.payment_status_service import PaymentStatusService
from application.services.reconciliation_service import WebhookReconciler
from application.services.token_service import TokenService
from core.config import settings
from core.settings import payment_settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from infrastructure.cache import (
    InMemoryRateLimiter,
    InMemoryThrottleGate,
    RedisCache,
    RedisRateLimiter,
    RedisThrottleGate,
    init_redis_cache,
    shutdown_redis_cache,
)
from infrastructure.database import create_tables
from infrastructure.external.payments import get_payment_gateway
from infrastructure.pending_orders import InMemoryPendingOrderIndex, RedisPendingOrderIndex
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


configure_logging()
logger = get_logger(__name__)


async def _init_shared_cache() -> Optional[RedisCache]:
    if payment_settings.pending.backend != "redis":
        return None
    if not settings.redis.url:
        logger.warning("redis_backend_missing_url", message="REDIS__URL not set, falling back to in-memory state")
        return None
    try:
        cache = await init_redis_cache()
        logger.info("redis_cache_initialized", namespace=settings.redis.namespace)
        return cache
    except Exception as exc:
        logger.error("redis_cache_init_failed", error=str(exc))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：装配组件并挂到 app.state"""
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    cache = await _init_shared_cache()
    gateway = get_payment_gateway()
    ttl = payment_settings.pending.ttl_seconds

    gate = RedisThrottleGate(cache) if cache else InMemoryThrottleGate()
    status_service = PaymentStatusService(
        SQLAlchemyUnitOfWork,
        gateway,
        gate,
        verify_cache_seconds=payment_settings.verify.cache_seconds,
    )
    if cache:
        # 共享状态下超时降级由 Celery 定时任务完成
        index = RedisPendingOrderIndex(cache, ttl_seconds=ttl)
    else:
        index = InMemoryPendingOrderIndex(ttl_seconds=ttl, on_expire=status_service.expire_pending_order)

    limiter = None
    rl = payment_settings.rate_limit
    if rl.enabled:
        limiter = (
            RedisRateLimiter(cache, limit=rl.limit, window_seconds=rl.window_seconds)
            if cache
            else InMemoryRateLimiter(limit=rl.limit, window_seconds=rl.window_seconds)
        )

    wh = payment_settings.webhook
    app.state.gateway = gateway
    app.state.pending_index = index
    app.state.rate_limiter = limiter
    app.state.status_service = status_service
    app.state.checkout_service = CheckoutService(SQLAlchemyUnitOfWork, gateway, index)
    app.state.reconciler = WebhookReconciler(
        SQLAlchemyUnitOfWork,
        gateway,
        index,
        stage_timeout=wh.stage_timeout,
        total_budget=wh.total_budget,
        recent_pending_limit=wh.recent_pending_limit,
    )
    app.state.token_service = TokenService()
    logger.info(
        "application_started",
        provider=gateway.provider,
        pending_backend="redis" if cache else "memory",
        pending_ttl_seconds=ttl,
    )

    yield

    await index.aclose()
    await gateway.aclose()
    if cache:
        await shutdown_redis_cache()
        logger.info("redis_cache_shutdown", message="Redis cache shutdown")
    logger.info("application_shutdown", message="Application shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="LemonSqueezy checkout and webhook reconciliation",
    )

    # 中间件从下往上执行：RequestID 最先，为日志提供 request_id
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(payments_routes.router)
    app.include_router(auth_routes.router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """健康检查端点"""
        return success_response(data={"status": "healthy"}, message="OK")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
