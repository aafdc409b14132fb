# Shared utilities package
from .config import BillingConfig, get_config
from .errors import APIError
from .members import Member, MemberStore
from .payments import PaymentGateway
from .response_utils import error_response, success_response

__all__ = [
    "BillingConfig",
    "get_config",
    "APIError",
    "Member",
    "MemberStore",
    "PaymentGateway",
    "error_response",
    "success_response",
]
