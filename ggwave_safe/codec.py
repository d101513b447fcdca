"""
Codec - encode and decode pipelines over an EngineHandle.

Encode
------
  payload
    -> length check against the configured maximum   (PayloadTooLarge)
    -> volume clamp to [0, 100]
    -> engine size query                              (<= 0: EncodeFailed)
    -> allocate exactly that many bytes
    -> engine encode                                  (<= 0 or > query: EncodeFailed)
    -> numpy array in sample_format_out

Decode
------
  samples in sample_format_in
    -> engine decode into an engine-sized buffer
    -> < 0: DecodeFailed, 0: NoMessageYet
    -> message queued behind any held back earlier
    -> oldest queued message longer than the caller's scratch:
       BufferTooSmall (message stays queued)
    -> copy into scratch, return bytes
"""

import logging
from collections import deque
from pathlib import Path
from typing import Optional, Union

import numpy as np
from numpy.typing import NDArray

from . import DEFAULT_VOLUME, MIN_VOLUME, MAX_VOLUME, DECODE_BUFFER_SIZE
from .container import ContainerWriter, ContainerFile
from .engine import Engine
from .errors import (
    InvalidParameters,
    UsageError,
    PayloadTooLarge,
    EncodeFailed,
    NoMessageYet,
    DecodeFailed,
    BufferTooSmall,
    UnsupportedFormat,
)
from .handle import EngineHandle
from .parameters import Parameters
from .protocols import ProtocolId

# Module-level logger
_logger = logging.getLogger(__name__)

Payload = Union[bytes, bytearray, memoryview, str]
Samples = Union[NDArray, bytes, bytearray, memoryview]


def clamp_volume(volume: int) -> int:
    """Clamp volume to the range the engine accepts."""
    clamped = min(max(int(volume), MIN_VOLUME), MAX_VOLUME)
    if clamped != volume:
        _logger.debug(f"Volume {volume} clamped to {clamped}")
    return clamped


def _as_protocol(protocol) -> ProtocolId:
    try:
        return ProtocolId(protocol)
    except ValueError:
        raise InvalidParameters(f"Unknown protocol {protocol!r}") from None


def _as_payload(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


class Codec:
    """
    Encode payloads to waveforms and decode captured waveforms to payloads.

    Wraps one EngineHandle; closing the codec closes the handle.
    """

    def __init__(self, handle: EngineHandle):
        """
        Initialize codec.

        Args:
            handle: Live engine handle, owned by the codec from now on
        """
        self._handle = handle
        self._writer = ContainerWriter()

        # Decoded messages not yet handed out, oldest first
        self._pending: deque[bytes] = deque()

    @classmethod
    def open(
        cls,
        params: Optional[Parameters] = None,
        engine: Optional[Engine] = None,
    ) -> "Codec":
        """Create a handle from params and wrap it."""
        return cls(EngineHandle.create(params, engine))

    @property
    def handle(self) -> EngineHandle:
        return self._handle

    @property
    def parameters(self) -> Parameters:
        return self._handle.parameters

    @property
    def max_payload_size(self) -> int:
        return self.parameters.max_payload_size

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def close(self):
        """Destroy the underlying engine instance."""
        self._pending.clear()
        self._handle.close()

    def __enter__(self) -> "Codec":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # -- encode ------------------------------------------------------------

    def encode(
        self,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
    ) -> NDArray:
        """
        Encode a payload to audio samples.

        Args:
            payload: Bytes to transmit (str is UTF-8 encoded)
            protocol: Catalog protocol to modulate with
            volume: 0-100, out-of-range values are clamped

        Returns:
            Samples in the sample_format_out dtype at sample_rate_out

        Raises:
            UsageError: if the instance was created without TX or the
                protocol is disabled for transmit
            PayloadTooLarge: if the payload exceeds max_payload_size
            InvalidParameters: if protocol is not in the catalog
            EncodeFailed: if the engine reports failure
        """
        params = self.parameters
        if not params.can_encode:
            raise UsageError(f"encode needs TX, instance mode is {params.operating_mode!r}")

        data = _as_payload(payload)
        if len(data) > params.max_payload_size:
            raise PayloadTooLarge(len(data), params.max_payload_size)

        protocol = _as_protocol(protocol)
        if not self._handle.is_tx_protocol_enabled(protocol):
            raise UsageError(f"protocol {protocol.slug} is disabled for transmit")
        volume = clamp_volume(volume)
        dtype = params.sample_format_out.dtype

        if not data:
            return np.zeros(0, dtype=dtype)

        engine = self._handle.engine
        with self._handle.exclusive() as instance:
            size = engine.encode_size(instance, data, int(protocol), volume)
            if size <= 0:
                raise EncodeFailed("engine size query failed", size)

            buffer = bytearray(size)
            written = engine.encode(instance, data, int(protocol), volume, buffer)

        if written <= 0 or written > size:
            raise EncodeFailed(f"engine wrote {written} bytes into a {size}-byte buffer", written)
        if written % dtype.itemsize:
            raise EncodeFailed(f"engine wrote a partial sample ({written} bytes)", written)

        _logger.debug(
            f"Encoded {len(data)} bytes with {protocol.slug} at volume {volume}: "
            f"{written // dtype.itemsize} samples"
        )
        return np.frombuffer(buffer, dtype=dtype, count=written // dtype.itemsize)

    def encode_to_container(
        self,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
    ) -> ContainerFile:
        """Encode and package the waveform as an in-memory WAV file."""
        waveform = self.encode(payload, protocol, volume)
        params = self.parameters
        return self._writer.write(waveform, params.sample_rate_out, params.sample_format_out)

    def encode_to_file(
        self,
        output_path: str | Path,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
    ) -> ContainerFile:
        """Encode and save the waveform as a WAV file."""
        container = self.encode_to_container(payload, protocol, volume)
        container.save(output_path)
        return container

    # -- decode ------------------------------------------------------------

    def _as_input_bytes(self, waveform: Samples) -> bytes:
        fmt = self.parameters.sample_format_in
        if isinstance(waveform, np.ndarray):
            if waveform.dtype != fmt.dtype:
                raise UnsupportedFormat(
                    f"waveform dtype {waveform.dtype} does not match input format {fmt.name}"
                )
            return np.ascontiguousarray(waveform).tobytes()

        data = bytes(waveform)
        if len(data) % fmt.sample_width:
            raise UnsupportedFormat(
                f"{len(data)} bytes is not a whole number of {fmt.name} samples"
            )
        return data

    def decode(self, waveform: Samples, scratch: Optional[bytearray] = None) -> bytes:
        """
        Feed captured samples to the receiver and return a completed message.

        Samples must be raw audio at sample_rate_in in sample_format_in,
        never container-file bytes. Samples are always fed, even while an
        earlier message is held back; a message they complete is queued
        behind it, and messages come out oldest first.

        Args:
            waveform: numpy array in the input dtype, or raw sample bytes
                (empty to collect a held-back message without new audio)
            scratch: Buffer receiving the message (None = max_payload_size bytes)

        Returns:
            The oldest undelivered payload (also copied into scratch)

        Raises:
            UsageError: if the instance was created without RX
            NoMessageYet: no complete message yet; feed more audio
            BufferTooSmall: scratch cannot hold the oldest message; it stays
                queued, retry with required_len bytes
            DecodeFailed: the engine reported an error; queued messages are kept
        """
        params = self.parameters
        if not params.can_decode:
            raise UsageError(f"decode needs RX, instance mode is {params.operating_mode!r}")

        if scratch is None:
            scratch = bytearray(params.max_payload_size)

        samples = self._as_input_bytes(waveform)
        if samples:
            message = self._feed(samples)
            if message is not None:
                self._pending.append(message)

        if self._pending:
            return self._deliver(scratch)
        if not samples:
            # The empty payload encodes to the empty waveform.
            return b""
        raise NoMessageYet("no complete message yet, feed more samples")

    def _feed(self, samples: bytes) -> Optional[bytes]:
        buffer = bytearray(max(DECODE_BUFFER_SIZE, self.parameters.max_payload_size))
        engine = self._handle.engine
        with self._handle.exclusive() as instance:
            result = engine.decode(instance, samples, buffer)

        if result < 0:
            raise DecodeFailed("engine could not decode the waveform", result)
        if result == 0:
            return None
        if result > len(buffer):
            raise DecodeFailed(f"engine reported {result} bytes for a {len(buffer)}-byte buffer", result)

        _logger.debug(f"Decoded {result}-byte message from {len(samples)} bytes of audio")
        return bytes(buffer[:result])

    def _deliver(self, scratch: bytearray) -> bytes:
        message = self._pending[0]
        if len(message) > len(scratch):
            raise BufferTooSmall(len(message), len(scratch))

        self._pending.popleft()
        scratch[:len(message)] = message
        return message

    def decode_text(
        self,
        waveform: Samples,
        scratch: Optional[bytearray] = None,
        errors: str = "strict",
    ) -> str:
        """Decode and interpret the message as UTF-8 text."""
        return self.decode(waveform, scratch).decode("utf-8", errors=errors)

    @property
    def has_pending(self) -> bool:
        """True while decoded messages wait to be handed out."""
        return bool(self._pending)

    def __repr__(self) -> str:
        return f"Codec({self._handle!r})"
