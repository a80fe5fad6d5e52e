"""Hesap koruma hataları. HTTP eşlemesi app/main.py exception handler'larında."""


class SecurityServiceError(Exception):
    status_code = 500
    message = "Güvenlik servisi hatası."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class StoreUnavailable(SecurityServiceError):
    """Veritabanına ulaşılamadı veya işlem zaman aşımına uğradı; sonuç tahmin edilmez."""

    status_code = 503
    message = "Güvenlik kaydı şu an yazılamıyor. Kilit durumunu tekrar sorgulayın."


class LockoutDecisionConflict(SecurityServiceError):
    """Optimistic retry hakkı bitti; çağıran kilit durumunu yeniden sorgulamalı."""

    status_code = 409
    message = "Kilit kararı eşzamanlı bir istekle çakıştı. Lütfen tekrar deneyin."


class InvalidSubject(SecurityServiceError):
    status_code = 422
    message = "Geçersiz hesap tanımlayıcısı."


class Unauthorized(SecurityServiceError):
    status_code = 403
    message = "Bu işlem için yetkiniz yok."
