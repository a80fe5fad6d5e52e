from .account_lockout import AccountLockout
from .login_attempt import LoginAttempt
from .rate_limit_hit import RateLimitHit
from .security_alert import SecurityAlert
from .security_log import SecurityLog
from .security_policy import SecurityPolicy
from .user_device import UserDevice

__all__ = [
    "AccountLockout",
    "LoginAttempt",
    "RateLimitHit",
    "SecurityAlert",
    "SecurityLog",
    "SecurityPolicy",
    "UserDevice",
]
