from typing import Any, Dict, Optional


class CampsError(ValueError):
    """Base class for domain errors raised by camp services."""


class NotFoundError(CampsError):
    pass


class ForbiddenError(CampsError):
    pass


class PaywallError(CampsError):
    """Raised when a free family tries to save more camps than allowed."""

    def __init__(self, saved_count: int, limit: int, message: Optional[str] = None) -> None:
        self.saved_count = saved_count
        self.limit = limit
        super().__init__(message or f"Free plan limit reached ({saved_count}/{limit} camps saved)")

    @property
    def payload(self) -> Dict[str, Any]:
        return {
            "type": "PAYWALL",
            "code": "CAMP_LIMIT",
            "saved_count": self.saved_count,
            "limit": self.limit,
            "message": str(self),
        }
