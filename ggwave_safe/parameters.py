"""
Engine configuration record.

Mirrors the engine's parameter struct with defaulting and validation.
"""

import dataclasses
from dataclasses import dataclass
from enum import IntEnum, IntFlag

import numpy as np

from . import (
    SAMPLE_RATE,
    SAMPLES_PER_FRAME,
    SOUND_MARKER_THRESHOLD,
    MAX_VARIABLE_PAYLOAD,
    MAX_FIXED_PAYLOAD,
)
from .errors import InvalidParameters, UnsupportedFormat


class SampleFormat(IntEnum):
    """Sample encodings understood by the engine."""

    UNDEFINED = 0
    U8 = 1
    I8 = 2
    U16 = 3
    I16 = 4
    F32 = 5

    @property
    def dtype(self) -> np.dtype:
        """numpy dtype holding one sample of this format."""
        if self is SampleFormat.UNDEFINED:
            raise UnsupportedFormat("UNDEFINED sample format has no dtype")
        return np.dtype(_DTYPES[self])

    @property
    def sample_width(self) -> int:
        """Bytes per sample."""
        return self.dtype.itemsize

    def silence(self):
        """Sample value representing silence (midpoint for unsigned formats)."""
        if self is SampleFormat.U8:
            return 128
        if self is SampleFormat.U16:
            return 32768
        return 0


_DTYPES = {
    SampleFormat.U8: "<u1",
    SampleFormat.I8: "<i1",
    SampleFormat.U16: "<u2",
    SampleFormat.I16: "<i2",
    SampleFormat.F32: "<f4",
}


class OperatingMode(IntFlag):
    """Engine operating mode bits."""

    RX = 1 << 1
    TX = 1 << 2
    RX_AND_TX = RX | TX
    TX_ONLY_TONES = 1 << 3
    USE_DSS = 1 << 4


_KNOWN_MODE_BITS = int(
    OperatingMode.RX | OperatingMode.TX | OperatingMode.TX_ONLY_TONES | OperatingMode.USE_DSS
)

_ENUM_FIELDS = (
    ("sample_format_in", SampleFormat),
    ("sample_format_out", SampleFormat),
    ("operating_mode", OperatingMode),
)


@dataclass(frozen=True)
class Parameters:
    """
    Snapshot of engine configuration.

    Attributes:
        payload_length: Fixed payload length in bytes, or -1 for variable length
        sample_rate_in: Rate of samples fed to decode (Hz)
        sample_rate_out: Rate of samples produced by encode (Hz)
        sample_rate: Internal capture rate (Hz)
        samples_per_frame: Engine frame size in samples
        sound_marker_threshold: Start/end marker detection threshold
        sample_format_in: Format of samples fed to decode
        sample_format_out: Format of samples produced by encode
        operating_mode: Which of encode/decode the instance permits
    """

    payload_length: int = -1
    sample_rate_in: float = float(SAMPLE_RATE)
    sample_rate_out: float = float(SAMPLE_RATE)
    sample_rate: float = float(SAMPLE_RATE)
    samples_per_frame: int = SAMPLES_PER_FRAME
    sound_marker_threshold: float = SOUND_MARKER_THRESHOLD
    sample_format_in: SampleFormat = SampleFormat.F32
    sample_format_out: SampleFormat = SampleFormat.F32
    operating_mode: OperatingMode = OperatingMode.RX_AND_TX

    def __post_init__(self):
        # Plain integers are accepted for the enum-valued fields
        for name, enum in _ENUM_FIELDS:
            value = getattr(self, name)
            try:
                object.__setattr__(self, name, enum(value))
            except (ValueError, TypeError):
                raise InvalidParameters(f"{name}: unrecognized value {value!r}") from None

    @classmethod
    def default(cls) -> "Parameters":
        """Engine-recommended defaults: 48 kHz, F32 in/out, RX and TX, variable length."""
        return cls()

    @classmethod
    def fixed_length(
        cls,
        payload_length: int,
        operating_mode: OperatingMode = OperatingMode.RX_AND_TX,
    ) -> "Parameters":
        """Defaults with a fixed payload length."""
        return cls(payload_length=payload_length, operating_mode=operating_mode)

    def replace(self, **changes) -> "Parameters":
        """Copy with some fields changed."""
        return dataclasses.replace(self, **changes)

    @property
    def is_variable_length(self) -> bool:
        return self.payload_length < 0

    @property
    def max_payload_size(self) -> int:
        """Largest payload encode accepts."""
        if self.is_variable_length:
            return MAX_VARIABLE_PAYLOAD
        return self.payload_length

    @property
    def can_encode(self) -> bool:
        return bool(int(self.operating_mode) & OperatingMode.TX)

    @property
    def can_decode(self) -> bool:
        return bool(int(self.operating_mode) & OperatingMode.RX)

    def validate(self) -> "Parameters":
        """
        Check the record against what the engine accepts.

        Returns:
            self, so calls can be chained

        Raises:
            InvalidParameters: on any out-of-range or unrecognized value
        """
        for name in ("sample_rate_in", "sample_rate_out", "sample_rate"):
            value = getattr(self, name)
            if not value > 0:
                raise InvalidParameters(f"{name} must be > 0, got {value}")

        if self.samples_per_frame <= 0:
            raise InvalidParameters(
                f"samples_per_frame must be > 0, got {self.samples_per_frame}"
            )

        for name in ("sample_format_in", "sample_format_out"):
            if getattr(self, name) is SampleFormat.UNDEFINED:
                raise InvalidParameters(f"{name} must not be UNDEFINED")

        mode = int(self.operating_mode)
        if mode & ~_KNOWN_MODE_BITS:
            raise InvalidParameters(f"operating_mode has unknown bits: {mode:#x}")
        if not mode & int(OperatingMode.RX_AND_TX):
            raise InvalidParameters("operating_mode must include RX or TX")

        if not self.is_variable_length and not 1 <= self.payload_length <= MAX_FIXED_PAYLOAD:
            raise InvalidParameters(
                f"payload_length must be -1 or 1..{MAX_FIXED_PAYLOAD}, got {self.payload_length}"
            )

        return self
