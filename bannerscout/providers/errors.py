"""Provider-level exceptions."""


class ProviderError(Exception):
    """A provider's search or discovery call failed."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class ProviderConfigError(ProviderError):
    """Required provider configuration (such as an API key) is missing."""
