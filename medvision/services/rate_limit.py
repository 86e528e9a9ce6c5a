"""Fixed-window request limiting on top of a Redis-compatible store.

The store is injected (``get_redis``). With the in-memory store the limits are
per process only; run Redis when the API is served by several workers.
"""
from dataclasses import dataclass
from typing import Dict
import logging

from ..core.exceptions import RateLimited

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int


RULES: Dict[str, RateLimitRule] = {
    "patient_login": RateLimitRule(10, 5 * 60),
    "doctor_login": RateLimitRule(5, 5 * 60),
    "admin_login": RateLimitRule(3, 10 * 60),
    "validate_code": RateLimitRule(5, 10 * 60),
    "password_reset": RateLimitRule(3, 60 * 60),
}


class RateLimiter:
    def __init__(self, store):
        self.store = store

    def hit(self, key: str, rule: RateLimitRule) -> bool:
        """Record one request; return False once the window's budget is spent."""
        count = int(self.store.incr(key))
        if count == 1:
            self.store.expire(key, rule.window_seconds)
        return count <= rule.max_requests

    def check(self, scope: str, identifier: str) -> None:
        rule = RULES[scope]
        if not self.hit(f"rate_limit:{scope}:{identifier}", rule):
            logger.warning(f"Rate limit exceeded for {scope} by {identifier}")
            raise RateLimited()
