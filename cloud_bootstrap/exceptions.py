"""Custom exception hierarchy for the cloud bootstrap agent.

Transport, provider and host errors are kept in separate subtrees: the
provider layer converts every ``HttpError`` into ``ResourceUnreachable`` so
nothing above it ever sees transport detail.
"""


class BootstrapError(Exception):
    """Base exception for all agent errors."""


class ConfigError(BootstrapError):
    """Invalid or missing agent settings."""


class UserDataError(BootstrapError):
    """The user-data configuration document could not be parsed."""


# ── Transport ───────────────────────────────────────────────────────


class HttpError(BootstrapError):
    """Error raised by the HTTP client."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class HttpTimeoutError(HttpError):
    """The request did not complete within the configured duration."""


class HttpTlsError(HttpError):
    """TLS handshake or certificate verification failed."""


class HttpRequestError(HttpError):
    """The request could not be built (malformed header name or value)."""


class HttpTransportError(HttpError):
    """Connection or protocol failure."""


class HttpResponseError(HttpError):
    """The response body could not be decoded as text."""


class HttpClientError(HttpError):
    """HTTP 4xx."""


class HttpServerError(HttpError):
    """HTTP 5xx."""


# ── Provider ────────────────────────────────────────────────────────


class CloudProviderError(BootstrapError):
    """Base exception for cloud provider failures."""


class AuthenticationError(CloudProviderError):
    """API credentials are missing or a request signature could not be built."""


class NotAvailable(CloudProviderError):
    """Not running on this platform, or the platform returned an unexpected resource."""


class ResourceUnreachable(CloudProviderError):
    """A metadata or API resource could not be fetched."""


class ConfigurationError(CloudProviderError):
    """The user-data configuration is unusable."""


# ── Host ────────────────────────────────────────────────────────────


class HostError(BootstrapError):
    """Base exception for host provisioning failures."""


class HostnameError(HostError):
    """Setting the hostname failed."""


class SSHSetupError(HostError):
    """Generating an SSH host key failed."""


class HostIOError(HostError):
    """A filesystem operation failed."""
