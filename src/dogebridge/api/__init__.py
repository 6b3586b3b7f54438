"""Inbound API components - rate limiter and bridge facade."""

from dogebridge.api.bridge_api import BridgeAPI
from dogebridge.api.ratelimit import RateLimiter

__all__ = ["BridgeAPI", "RateLimiter"]
