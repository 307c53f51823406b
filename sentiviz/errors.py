"""Error taxonomy shared by the relay server and the voice client."""

from typing import Any, Optional


class SentivizError(Exception):
    """Base class for all SentiViz errors."""

    kind = "error"


class RelayError(SentivizError):
    """Failure of a single /process_text request. Never retried."""

    kind = "relay_error"
    status = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        """Build the JSON error body returned by the relay."""
        return {"error": self.message}


class InvalidInput(RelayError):
    """Request text is missing, not a string, or blank."""

    kind = "invalid_input"
    status = 400


class UpstreamBadResponse(RelayError):
    """The model answered with something that is not JSON."""

    kind = "upstream_bad_response"
    status = 502

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message, details=raw)
        self.raw = raw

    def to_payload(self) -> dict:
        return {"error": self.message, "raw": self.raw}


class UpstreamTimeout(RelayError):
    """The completion service did not answer within the configured timeout."""

    kind = "upstream_timeout"
    status = 504


class UpstreamError(RelayError):
    """Any other transport, auth or provider failure."""

    kind = "upstream_error"
    status = 500

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details}


class StreamError(SentivizError):
    """Base class for transcription stream errors."""

    kind = "stream_error"


class StreamParseError(StreamError):
    """Inbound transcription message could not be parsed. Non-fatal."""

    kind = "stream_parse_error"

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class StreamDisconnect(StreamError):
    """The transcription service closed the connection unexpectedly."""

    kind = "stream_disconnect"

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class AudioDeviceError(SentivizError):
    """Microphone could not be opened."""

    kind = "audio_device_error"


class PermissionDenied(AudioDeviceError):
    kind = "permission_denied"


class DeviceNotFound(AudioDeviceError):
    kind = "device_not_found"
