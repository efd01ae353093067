"""Exceptions and error kinds for tributary."""

from enum import Enum


class ErrorKind(str, Enum):
    """Every failure the reconciliation engine can observe.

    Only ``TRANSPORT`` and ``DECODE`` end a stream; the per-frame kinds are
    logged and absorbed.  ``PROVIDER`` is raised before streaming begins.
    """

    PROVIDER = "provider_error"
    TRANSPORT = "transport_error"
    DECODE = "decode_error"
    MALFORMED_FRAME = "malformed_frame"
    ORPHAN_TOOL_FRAGMENT = "orphan_tool_fragment"
    UNPARSABLE_TOOL_ARGUMENTS = "unparsable_tool_arguments"


class TributaryError(Exception):
    """Base exception for tributary."""

    kind: ErrorKind


class ProviderError(TributaryError):
    """The provider answered the initial request with a non-2xx status.

    Args:
        status_code: HTTP status of the initial response.
        body: Response body text, as returned by the provider.
    """

    kind = ErrorKind.PROVIDER

    def __init__(self, status_code: int, body: str):
        super().__init__(f"{status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TransportError(TributaryError):
    """Reading the next chunk of the response body failed."""

    kind = ErrorKind.TRANSPORT


class DecodeError(TributaryError):
    """The response body is not valid UTF-8."""

    kind = ErrorKind.DECODE
