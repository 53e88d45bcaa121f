"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class TransferValidationError(DomainException):
    """Requested split does not fit the configured destination accounts"""

    pass


class ConfigurationError(DomainException):
    """A required configuration value is missing at request time"""

    pass


class PaymentProviderError(DomainException):
    """Stripe rejected a call or is unavailable"""

    def __init__(self, message: str, code: str | None = None, http_status: int | None = None):
        super().__init__(message)
        self.code = code
        self.http_status = http_status


class UserStoreError(DomainException):
    """Firebase Realtime Database read or write failed"""

    pass


class SheetLoggingError(DomainException):
    """Apps Script sheet logger did not accept the row"""

    pass


class UpstreamProxyError(DomainException):
    """Proxied upstream could not be reached"""

    pass


class PushDeliveryError(DomainException):
    """Web Push service rejected a notification"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def subscription_gone(self) -> bool:
        return self.status_code in (404, 410)


class CustomerNotProvisionedError(DomainException):
    """Subscriber record has no Stripe customer id yet"""

    pass


class InvalidDonationAmountError(DomainException):
    """Donation amount is not a number of at least one dollar"""

    pass
