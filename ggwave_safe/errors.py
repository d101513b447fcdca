"""
Exception taxonomy.

Every integer the engine returns is classified at the codec boundary into one
of these; callers never see a raw sentinel.
"""

from typing import Optional


class GGWaveError(Exception):
    """Base class for all ggwave-safe errors."""


class InvalidParameters(GGWaveError, ValueError):
    """Parameter record or protocol value rejected before reaching the engine."""


class InitializationError(GGWaveError):
    """The engine refused to create an instance."""


class EngineUnavailable(InitializationError):
    """The native engine library could not be loaded."""


class UsageError(GGWaveError):
    """Operation not allowed: closed handle or operating mode forbids it."""


class PayloadTooLarge(GGWaveError, ValueError):
    """Payload exceeds what the engine accepts for the configured mode."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"payload of {size} bytes exceeds the {limit}-byte limit")
        self.size = size
        self.limit = limit


class EncodeFailed(GGWaveError):
    """The engine reported failure while sizing or producing a waveform."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message if code is None else f"{message} (engine returned {code})")
        self.code = code


class NoMessageYet(GGWaveError):
    """
    No complete message in the audio fed so far.

    Not a failure: keep feeding samples and call decode again.
    """


class DecodeFailed(GGWaveError):
    """The engine reported an unrecoverable decode error."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message if code is None else f"{message} (engine returned {code})")
        self.code = code


class BufferTooSmall(GGWaveError):
    """
    Decoded message does not fit the scratch buffer.

    Retry with a buffer of at least ``required_len`` bytes; the message is
    held until then.
    """

    def __init__(self, required_len: int, available: int):
        super().__init__(
            f"decoded message needs {required_len} bytes, buffer holds {available}"
        )
        self.required_len = required_len
        self.available = available


class UnsupportedFormat(GGWaveError, ValueError):
    """Sample format has no container or array equivalent."""
