"""
Structlog 日志配置模块

支付事件的日志会携带签名、令牌、客户邮箱等字段，统一在处理链中脱敏。
"""
import logging
import json
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter, add_logger_name
from typing import Any, List, MutableMapping

from core.config import settings


# 日志字段名（小写）命中即整体遮蔽
SENSITIVE_KEYS = frozenset({
    "token", "secret", "api_key", "access_token",
    "clientsecret", "client_secret", "webhook_secret",
    "authorization", "x-signature", "signature",
})

# 邮箱只保留首字符与域名
EMAIL_KEYS = frozenset({"email", "user_email", "useremail"})

# 第三方库日志级别下限
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.INFO,
}


def mask_email(value: Any) -> Any:
    if not isinstance(value, str) or "@" not in value:
        return value
    local, _, domain = value.partition("@")
    return f"{local[:1]}***@{domain}"


def redact_sensitive(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog 处理器：遮蔽敏感字段"""
    for key in list(event_dict.keys()):
        lowered = str(key).lower()
        if lowered in SENSITIVE_KEYS:
            event_dict[key] = "***"
        elif lowered in EMAIL_KEYS:
            event_dict[key] = mask_email(event_dict[key])
    return event_dict


def add_service_context(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def get_renderer() -> Any:
    """DEBUG 下彩色控制台输出，其余环境输出 JSON（保留中文原文）"""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog 会向 serializer 传入 default/sort_keys 等参数
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def build_pre_chain() -> List[Any]:
    """structlog 与 stdlib ProcessorFormatter 共用的预处理链"""
    return [
        merge_contextvars,
        add_log_level,
        add_logger_name,
        TimeStamper(fmt="iso", utc=True),
        add_service_context,
        redact_sensitive,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging() -> None:
    pre_chain = build_pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn、sqlalchemy、celery 的标准库日志走同一条渲染链
    formatter = ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)


# 初始化配置
configure_logging()
