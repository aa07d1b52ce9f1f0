from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    pass


class GenerationConfigurationError(ServiceError):
    pass


class GenerationAPIError(ServiceError):
    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


class PaymentProviderError(ServiceError):
    def __init__(self, provider: str, status_code: int, message: str):
        super().__init__(f"{provider} error: {message}")
        self.provider = provider
        self.status_code = status_code
        self.message = message
