"""
Remote service integrations.
"""

from .auth import ForgeAuthClient
from .bim360 import BIM360Client
from .errors import BIM360APIError, BIM360Error, RateLimitedError, describe_error

__all__ = [
    "BIM360APIError",
    "BIM360Client",
    "BIM360Error",
    "ForgeAuthClient",
    "RateLimitedError",
    "describe_error",
]
