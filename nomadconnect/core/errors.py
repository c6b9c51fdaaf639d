from typing import Any, Dict


class CoreError(Exception):
    """Base for every failure the core surfaces to its callers."""

    status_code = 500
    error = "Error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def extras(self) -> Dict[str, Any]:
        return {}


class InvalidInput(CoreError):
    status_code = 400
    error = "Invalid Input"


class Forbidden(CoreError):
    status_code = 403
    error = "Forbidden"


class NotFound(CoreError):
    status_code = 404
    error = "Not Found"


class QuotaExceeded(CoreError):
    status_code = 429
    error = "Quota Exceeded"

    def __init__(self, operation: str, limit: int, used: int, tier: str):
        super().__init__(f"{operation} limit reached ({used}/{limit}) for tier '{tier}'")
        self.operation = operation
        self.limit = limit
        self.used = used
        self.tier = tier

    def extras(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "used": self.used,
            "tier": self.tier,
            "requires_upgrade": True,
        }


class Unavailable(CoreError):
    status_code = 503
    error = "Service Unavailable"
