"""Custom exceptions for FlowRelay.

Provides a hierarchy of exceptions with stable error codes so log
entries and metrics can be grouped by failure kind.
"""

from typing import Any


class FlowRelayError(Exception):
    """Base exception for all FlowRelay errors."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize exception with optional details.

        Args:
            message: Human-readable error message.
            details: Additional error details for debugging.
            cause: Original exception that caused this error.
        """
        self.message = message or self.message
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Startup errors, all fatal
class ConfigurationError(FlowRelayError):
    """Configuration error."""

    error_code = "CONFIGURATION_ERROR"
    message = "Service configuration error"


class ReceiverStartupError(ConfigurationError):
    """Listening socket could not be created, configured or bound."""

    error_code = "RECEIVER_STARTUP_ERROR"
    message = "Failed to start the NetFlow receiver"


# Packet decoding errors, recovered per datagram
class PacketDecodeError(FlowRelayError):
    """Malformed NetFlow packet."""

    error_code = "PACKET_DECODE_ERROR"
    message = "Malformed NetFlow packet"


class HeaderTooShortError(PacketDecodeError):
    """Datagram is shorter than the NetFlow v5 header."""

    error_code = "HEADER_TOO_SHORT"
    message = "Packet too short for NetFlow v5 header"


class TruncatedRecordError(PacketDecodeError):
    """Datagram ends in the middle of a flow record."""

    error_code = "TRUNCATED_RECORD"
    message = "Flow record truncated"


class UnsupportedVersionError(PacketDecodeError):
    """Version field is not 5 (strict mode only)."""

    error_code = "UNSUPPORTED_VERSION"
    message = "Unsupported NetFlow version"


# External service errors
class DNSResolutionError(FlowRelayError):
    """Reverse DNS resolution failed."""

    error_code = "DNS_RESOLUTION_ERROR"
    message = "DNS resolution failed"


class OutputError(FlowRelayError):
    """Output sink error."""

    error_code = "OUTPUT_ERROR"
    message = "Output sink error"


class DestinationResolutionError(OutputError):
    """Output destination address could not be resolved."""

    error_code = "DESTINATION_RESOLUTION_ERROR"
    message = "Name resolution failed"
