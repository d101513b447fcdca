"""
ggwave-safe - Safe Python layer for the ggwave data-over-sound engine.
Owns engine instances, sizes buffers and translates engine sentinels.
"""

__version__ = "0.2.0"

# Engine constants
SAMPLE_RATE = 48000  # Hz (default for input, output and capture)
SAMPLES_PER_FRAME = 1024
SOUND_MARKER_THRESHOLD = 3.0

# Payload limits
MAX_VARIABLE_PAYLOAD = 140  # bytes, variable-length mode
MAX_FIXED_PAYLOAD = 64  # bytes, fixed-length mode
DECODE_BUFFER_SIZE = 256  # engine-side maximum data size

# Volume range accepted by the engine
MIN_VOLUME = 0
MAX_VOLUME = 100
DEFAULT_VOLUME = 25

from .errors import (
    GGWaveError,
    InvalidParameters,
    InitializationError,
    EngineUnavailable,
    UsageError,
    PayloadTooLarge,
    EncodeFailed,
    NoMessageYet,
    DecodeFailed,
    BufferTooSmall,
    UnsupportedFormat,
)
from .protocols import ProtocolId, Direction, catalog
from .parameters import SampleFormat, OperatingMode, Parameters
from .engine import Engine, NativeEngine, default_engine
from .handle import EngineHandle
from .codec import Codec
from .container import ContainerWriter, ContainerFile
from .streaming import RingBuffer, StreamState, StreamingAdapter
from .aio import AsyncCodec

__all__ = [
    "GGWaveError",
    "InvalidParameters",
    "InitializationError",
    "EngineUnavailable",
    "UsageError",
    "PayloadTooLarge",
    "EncodeFailed",
    "NoMessageYet",
    "DecodeFailed",
    "BufferTooSmall",
    "UnsupportedFormat",
    "ProtocolId",
    "Direction",
    "catalog",
    "SampleFormat",
    "OperatingMode",
    "Parameters",
    "Engine",
    "NativeEngine",
    "default_engine",
    "EngineHandle",
    "Codec",
    "ContainerWriter",
    "ContainerFile",
    "RingBuffer",
    "StreamState",
    "StreamingAdapter",
    "AsyncCodec",
]
