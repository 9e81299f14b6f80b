# backend/services/errors.py
"""Domain errors raised by the warehouse services.

Every error is a caller-actionable condition detected before any mutation.
Routers let them propagate; ``main.py`` renders them as
``{"detail": ..., "code": ..., **extra}`` with the class' HTTP status.
"""
from typing import Any, Dict, Iterable, Optional


class WarehouseError(Exception):
    status_code = 400
    code = "warehouse_error"

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code, **self.extra}


class NotFound(WarehouseError):
    status_code = 404
    code = "not_found"


class InsufficientStock(WarehouseError):
    code = "insufficient_stock"

    def __init__(self, detail: str, available: int):
        super().__init__(detail, available=available)
        self.available = available


class UnitNotAvailable(WarehouseError):
    code = "unit_not_available"

    def __init__(self, detail: str, serial_number_ids: Iterable[int] = ()):
        ids = sorted(serial_number_ids)
        super().__init__(detail, serial_number_ids=ids)
        self.serial_number_ids = ids


class UnitNotAssigned(WarehouseError):
    code = "unit_not_assigned"

    def __init__(self, detail: str, serial_number_ids: Iterable[int] = ()):
        ids = sorted(serial_number_ids)
        super().__init__(detail, serial_number_ids=ids)
        self.serial_number_ids = ids


class DuplicateSerialNumber(WarehouseError):
    code = "duplicate_serial_number"

    def __init__(self, serial_numbers: Iterable[str], detail: Optional[str] = None):
        values = sorted(set(serial_numbers))
        super().__init__(detail or f"Serial numbers already exist: {', '.join(values)}", serial_numbers=values)
        self.serial_numbers = values


class NotConfigured(WarehouseError):
    code = "not_configured"


class InvalidInput(WarehouseError):
    code = "invalid_input"


class Forbidden(WarehouseError):
    status_code = 403
    code = "forbidden"
