"""
Error taxonomy for the gateway.

Every request-time failure is a GatewayError and is rendered by the app's
exception handlers as the single failure envelope:

    {"success": false, "cause": "<text>"}

ConfigurationError is not a GatewayError: it is only raised while the process
starts and is never answered to a client.
"""


class ConfigurationError(Exception):
    """Missing or unparseable startup setting."""


class GatewayError(Exception):
    status_code = 400

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


class InvalidRequestError(GatewayError):
    """Missing identifying fields or a malformed resource path."""


class UpstreamError(GatewayError):
    """Any collaborator failure. The cause is passed through untouched."""


class ExtractionError(GatewayError):
    """The rate limiter could not determine the caller's address."""


class RateLimitedError(GatewayError):
    status_code = 429

    def __init__(self, cause: str, retry_after: int):
        super().__init__(cause)
        self.retry_after = retry_after
