"""
Module: blockchain/errors.py
Description: Exceptions partagées par les adapters, le registre et la configuration.
"""


class GatewayError(Exception):
    """Base class for every error raised by the gateway itself."""


class UpstreamError(GatewayError):
    """A node RPC or data API call failed or returned malformed data."""

    def __init__(self, message: str, method: str = None):
        self.method = method
        super().__init__(f"{method}: {message}" if method else message)


class InvalidRequestError(GatewayError):
    """The caller sent a payload the adapter cannot parse."""


class ConfigError(GatewayError):
    pass


class RegistryBuildError(GatewayError):
    """An adapter factory failed while the registry was being built."""

    def __init__(self, chain: str, cause: Exception):
        self.chain = chain
        self.cause = cause
        super().__init__(f"failed to setup chain '{chain}': {cause}")
