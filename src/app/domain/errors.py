from __future__ import annotations


class NuggsError(Exception):
    pass


class QuotaExceededError(NuggsError):
    def __init__(
        self,
        message: str = "Daily generation limit reached",
        daily_limit: int = 0,
        is_anonymous: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.daily_limit = daily_limit
        self.is_anonymous = is_anonymous


class ConfigurationError(NuggsError):
    def __init__(self, setting: str, message: str | None = None):
        super().__init__(message or f"Missing configuration: {setting}")
        self.setting = setting


class ProfileNotFoundError(NuggsError):
    def __init__(self, user_id: str):
        super().__init__(f"Profile not found: {user_id}")
        self.user_id = user_id


class RepositoryError(NuggsError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class RecipeNotFoundError(NuggsError):
    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class WebhookError(NuggsError):
    pass


class WebhookSignatureError(WebhookError):
    def __init__(self, provider: str, reason: str = "Invalid signature"):
        super().__init__(f"{provider} webhook rejected: {reason}")
        self.provider = provider
        self.reason = reason


class WebhookPayloadError(WebhookError):
    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider} webhook payload error: {reason}")
        self.provider = provider
        self.reason = reason
