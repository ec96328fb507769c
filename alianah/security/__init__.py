from .rate_limit import (
    LOGIN_POLICY,
    OTP_POLICY,
    SET_PASSWORD_POLICY,
    MemoryStore,
    RateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    RedisStore,
    check_login_rate_limit,
    check_otp_rate_limit,
    check_set_password_rate_limit,
    get_client_ip,
)
from .tokens import create_portal_token, verify_portal_token

__all__ = [
    "LOGIN_POLICY",
    "OTP_POLICY",
    "SET_PASSWORD_POLICY",
    "MemoryStore",
    "RateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
    "RedisStore",
    "check_login_rate_limit",
    "check_otp_rate_limit",
    "check_set_password_rate_limit",
    "get_client_ip",
    "create_portal_token",
    "verify_portal_token",
]
