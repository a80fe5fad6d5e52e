from .security import (
    CleanupResponse,
    DeviceItem,
    LockoutDecisionResponse,
    LockoutStatusResponse,
    LoginAttemptItem,
    LoginAttemptRequest,
    ManualLockRequest,
    ResetLockoutRequest,
    ResetLockoutResponse,
    SecurityAlertItem,
    SecurityPolicyResponse,
    SecurityPolicyUpdate,
    SecurityReportResponse,
    TrustDeviceRequest,
    normalize_subject,
)

__all__ = [
    "CleanupResponse",
    "DeviceItem",
    "LockoutDecisionResponse",
    "LockoutStatusResponse",
    "LoginAttemptItem",
    "LoginAttemptRequest",
    "ManualLockRequest",
    "ResetLockoutRequest",
    "ResetLockoutResponse",
    "SecurityAlertItem",
    "SecurityPolicyResponse",
    "SecurityPolicyUpdate",
    "SecurityReportResponse",
    "TrustDeviceRequest",
    "normalize_subject",
]
