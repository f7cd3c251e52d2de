"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class PaymentStatusNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[str] = None):
        details = {"order_id": order_id} if order_id else None
        super().__init__(
            code=PaymentCode.STATUS_NOT_FOUND,
            message="Payment status not found",
            error_type="STATUS_NOT_FOUND",
            details=details,
            field="orderId",
        )


class PaymentStoreError(BusinessException):
    """支付状态存储不可用（连接、约束、超时等基础设施故障）"""

    def __init__(self, message: str, *, operation: str, order_id: Optional[str] = None):
        details = {"operation": operation}
        if order_id is not None:
            details["order_id"] = order_id
        super().__init__(
            code=BusinessCode.DATABASE_ERROR,
            message=message,
            error_type="PaymentStoreError",
            details=details,
        )
        self.operation = operation
        self.order_id = order_id
