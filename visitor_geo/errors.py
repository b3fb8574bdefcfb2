class AppError(Exception):
    """Base application error for the visitor geolocation service."""


class IpProviderError(AppError):
    """Base error for IP geolocation provider failures."""


class UpstreamServiceError(IpProviderError):
    """Raised when the upstream IP provider fails or returns an unusable response."""


class ProviderConfigError(IpProviderError):
    """Raised when a provider cannot be called because it is not configured (e.g. missing API key)."""


class StorageError(AppError):
    """Raised when the visitor store cannot be read or written."""
