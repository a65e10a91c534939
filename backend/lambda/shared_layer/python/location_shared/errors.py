"""location_shared.errors — Error kinds shared by the proxy and the reconciler.

Codec and router functions return ``(value, error)`` tuples where ``error``
is a :class:`RequestError`; configuration and provisioning failures are
raised as :class:`LocationProxyError` subclasses. Backend exceptions
(botocore, snowflake.connector) are never wrapped.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ErrorKind(enum.Enum):
    CLIENT_INPUT = "client_input"
    CONFIGURATION = "configuration"
    BACKEND = "backend"


@dataclass(frozen=True)
class RequestError:
    """Error half of a ``(value, error)`` result."""

    kind: ErrorKind
    code: str
    message: str


# Codes used by the envelope codec and the router.
INVALID_BODY = "InvalidBody"
INVALID_ROW = "InvalidRow"
MISSING_FUNCTION_NAME = "MissingFunctionName"
UNRECOGNIZED_OPERATION = "UnrecognizedOperation"
UNKNOWN_PROVIDER = "UnknownProvider"
PROVIDER_INDEX_UNAVAILABLE = "ProviderIndexUnavailable"
BACKEND_FAILURE = "BackendFailure"


def client_input_error(code: str, message: str) -> RequestError:
    return RequestError(ErrorKind.CLIENT_INPUT, code, message)


def configuration_error(code: str, message: str) -> RequestError:
    return RequestError(ErrorKind.CONFIGURATION, code, message)


def backend_error(message: str) -> RequestError:
    return RequestError(ErrorKind.BACKEND, BACKEND_FAILURE, message)


class LocationProxyError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(LocationProxyError):
    """Missing environment variable or invalid external configuration."""


class ProvisioningError(LocationProxyError):
    """The warehouse did not end up in the state a lifecycle event asked for."""
