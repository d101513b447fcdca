"""
Engine boundary.

The ggwave engine is an opaque native library with a C-style function table:
integer instance ids, raw buffers, and sentinel return codes. ``Engine`` names
that table; ``NativeEngine`` binds it to libggwave through cffi.

Nothing above this module sees a raw pointer. Sentinel codes are passed
through unchanged and classified by the codec.
"""

import ctypes.util
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

from cffi import FFI

from .errors import EngineUnavailable
from .parameters import Parameters, SampleFormat, OperatingMode
from .protocols import Direction

# Module-level logger
_logger = logging.getLogger(__name__)

# Environment variable naming an explicit libggwave path
LIBRARY_ENV = "GGWAVE_LIBRARY"

# Encode query modes of ggwave_encode
_QUERY_NONE = 0
_QUERY_BYTES = 1


class Engine(ABC):
    """
    Function table of the codec engine.

    Every method is a thin call with C semantics: instance ids are plain
    integers, failures are reported through return values.
    """

    # True when protocol masks live in tables shared by every instance.
    # Such engines also provide mask_lock and mask_owner, see EngineHandle.
    global_protocol_masks = False

    @abstractmethod
    def default_parameters(self) -> Parameters:
        """Engine-recommended parameters."""

    @abstractmethod
    def create(self, params: Parameters) -> int:
        """Allocate an instance. Returns its id, or a negative value on failure."""

    @abstractmethod
    def destroy(self, instance: int) -> None:
        """Release an instance."""

    @abstractmethod
    def encode_size(self, instance: int, payload: bytes, protocol: int, volume: int) -> int:
        """Bytes needed to encode payload. Returns <= 0 on failure."""

    @abstractmethod
    def encode(
        self, instance: int, payload: bytes, protocol: int, volume: int, out: bytearray
    ) -> int:
        """Encode payload into out. Returns bytes written, <= 0 on failure."""

    @abstractmethod
    def decode(self, instance: int, samples: bytes, out: bytearray) -> int:
        """
        Feed raw samples into the receiver.

        Returns bytes decoded into out, 0 if no message is complete yet, or a
        negative value on error.
        """

    @abstractmethod
    def set_protocol_enabled(
        self, instance: int, protocol: int, enabled: bool, direction: Direction
    ) -> None:
        """Enable or disable one protocol on the receive or transmit side."""

    def set_protocol_freq_start(
        self, instance: int, protocol: int, freq_start: int, direction: Direction
    ) -> None:
        """Move a protocol's starting frequency bin."""
        raise NotImplementedError(f"{type(self).__name__} does not support frequency offsets")

    def rx_duration_frames(self, instance: int) -> int:
        """Frames of audio the receiver has analysed for the current message."""
        return 0

    def disable_log(self) -> None:
        """Silence engine-side logging."""


_CDEF = """
    typedef struct {
        int payloadLength;
        float sampleRateInp;
        float sampleRateOut;
        float sampleRate;
        int samplesPerFrame;
        float soundMarkerThreshold;
        int sampleFormatInp;
        int sampleFormatOut;
        int operatingMode;
    } ggwave_Parameters;

    ggwave_Parameters ggwave_getDefaultParameters(void);
    int ggwave_init(ggwave_Parameters parameters);
    void ggwave_free(int instance);

    int ggwave_encode(int instance, const void *payloadBuffer, int payloadSize,
                      int protocolId, int volume, void *waveformBuffer, int query);
    int ggwave_ndecode(int instance, const void *waveformBuffer, int waveformSize,
                       void *payloadBuffer, int payloadSize);

    void ggwave_rxToggleProtocol(int protocolId, int state);
    void ggwave_txToggleProtocol(int protocolId, int state);
    void ggwave_rxProtocolSetFreqStart(int protocolId, int freqStart);
    void ggwave_txProtocolSetFreqStart(int protocolId, int freqStart);
    int ggwave_rxDurationFrames(int instance);

    void ggwave_setLogFile(void *fptr);
"""


def find_library() -> Optional[str]:
    """Locate libggwave: GGWAVE_LIBRARY first, then the system search path."""
    path = os.environ.get(LIBRARY_ENV)
    if path:
        return path
    return ctypes.util.find_library("ggwave")


class NativeEngine(Engine):
    """
    libggwave bound through cffi (ABI mode).

    The native library keeps protocol enable masks and frequency offsets in
    process-wide tables, so those setters ignore the instance id.
    """

    global_protocol_masks = True

    # Guards the process-wide protocol tables
    mask_lock = threading.RLock()
    # Token of the handle whose masks the tables currently hold
    mask_owner = None

    def __init__(self, library: Optional[str] = None):
        """
        Load the native library.

        Args:
            library: Path or name of libggwave (None = search)

        Raises:
            EngineUnavailable: if the library cannot be found or loaded
        """
        self.ffi = FFI()
        self.ffi.cdef(_CDEF)

        path = library or find_library()
        if not path:
            raise EngineUnavailable(
                f"libggwave not found; install it or set {LIBRARY_ENV} to its path"
            )

        try:
            self.lib = self.ffi.dlopen(path)
        except OSError as e:
            raise EngineUnavailable(f"Failed to load {path}: {e}") from e

        self.path = path
        _logger.info(f"Loaded ggwave engine from {path}")

    def default_parameters(self) -> Parameters:
        raw = self.lib.ggwave_getDefaultParameters()
        return Parameters(
            payload_length=raw.payloadLength,
            sample_rate_in=raw.sampleRateInp,
            sample_rate_out=raw.sampleRateOut,
            sample_rate=raw.sampleRate,
            samples_per_frame=raw.samplesPerFrame,
            sound_marker_threshold=raw.soundMarkerThreshold,
            sample_format_in=SampleFormat(raw.sampleFormatInp),
            sample_format_out=SampleFormat(raw.sampleFormatOut),
            operating_mode=OperatingMode(raw.operatingMode),
        )

    def _to_native(self, params: Parameters):
        raw = self.ffi.new("ggwave_Parameters *")
        raw.payloadLength = params.payload_length
        raw.sampleRateInp = params.sample_rate_in
        raw.sampleRateOut = params.sample_rate_out
        raw.sampleRate = params.sample_rate
        raw.samplesPerFrame = params.samples_per_frame
        raw.soundMarkerThreshold = params.sound_marker_threshold
        raw.sampleFormatInp = int(params.sample_format_in)
        raw.sampleFormatOut = int(params.sample_format_out)
        raw.operatingMode = int(params.operating_mode)
        return raw[0]

    def create(self, params: Parameters) -> int:
        return self.lib.ggwave_init(self._to_native(params))

    def destroy(self, instance: int) -> None:
        self.lib.ggwave_free(instance)

    def encode_size(self, instance: int, payload: bytes, protocol: int, volume: int) -> int:
        return self.lib.ggwave_encode(
            instance,
            self.ffi.from_buffer(payload),
            len(payload),
            protocol,
            volume,
            self.ffi.NULL,
            _QUERY_BYTES,
        )

    def encode(
        self, instance: int, payload: bytes, protocol: int, volume: int, out: bytearray
    ) -> int:
        return self.lib.ggwave_encode(
            instance,
            self.ffi.from_buffer(payload),
            len(payload),
            protocol,
            volume,
            self.ffi.from_buffer(out),
            _QUERY_NONE,
        )

    def decode(self, instance: int, samples: bytes, out: bytearray) -> int:
        return self.lib.ggwave_ndecode(
            instance,
            self.ffi.from_buffer(samples),
            len(samples),
            self.ffi.from_buffer(out),
            len(out),
        )

    def set_protocol_enabled(
        self, instance: int, protocol: int, enabled: bool, direction: Direction
    ) -> None:
        if direction is Direction.RX:
            self.lib.ggwave_rxToggleProtocol(protocol, int(enabled))
        else:
            self.lib.ggwave_txToggleProtocol(protocol, int(enabled))

    def set_protocol_freq_start(
        self, instance: int, protocol: int, freq_start: int, direction: Direction
    ) -> None:
        if direction is Direction.RX:
            self.lib.ggwave_rxProtocolSetFreqStart(protocol, freq_start)
        else:
            self.lib.ggwave_txProtocolSetFreqStart(protocol, freq_start)

    def rx_duration_frames(self, instance: int) -> int:
        return self.lib.ggwave_rxDurationFrames(instance)

    def disable_log(self) -> None:
        self.lib.ggwave_setLogFile(self.ffi.NULL)


_default_engine: Optional[NativeEngine] = None


def default_engine() -> NativeEngine:
    """Process-wide NativeEngine, loaded on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = NativeEngine()
    return _default_engine
