"""Custom TTS exceptions."""


class TTSError(Exception):
    """Base exception for TTS-related errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(TTSError):
    """Exception raised when a provider cannot be used as configured.

    This typically occurs when:
    - API key is missing or too short to be valid
    - API key is rejected by the provider (401/403)
    - Config file is unreadable or holds invalid values
    """

    pass


# Name kept for callers that think in terms of credentials.
TTSAuthError = ConfigurationError


class ProviderError(TTSError):
    """Exception raised for API communication errors during synthesis.

    This typically occurs when:
    - API server is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request format is invalid (4xx errors)
    - Network connectivity issues
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


TTSAPIError = ProviderError


class CacheError(TTSError):
    """Exception raised when the audio cache cannot be read or written."""

    pass


class PlatformError(TTSError):
    """Exception raised when the local OS voice cannot be used.

    Raised as the terminal error once the final system-voice fallback fails,
    so it is never merged into the generic all-providers message.
    """

    pass


class AllProvidersFailedError(TTSError):
    """Exception raised when every provider in the fallback chain failed."""

    def __init__(
        self,
        attempted: list[str],
        last_error: Exception | None = None,
    ) -> None:
        detail = str(last_error) if last_error else "no provider available"
        super().__init__(f"All providers failed. Last error: {detail}", last_error)
        self.attempted = attempted
        self.last_error = last_error
