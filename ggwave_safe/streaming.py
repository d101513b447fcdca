"""
Streaming adapter - continuous encode/decode over fixed-capacity ring buffers.

Audio keeps flowing while payloads are submitted and received. When a
producer outpaces its consumer the oldest samples are dropped: latency stays
bounded at the cost of completeness.
"""

import logging
from enum import Enum
from typing import Optional

import numpy as np

from . import DEFAULT_VOLUME, SAMPLE_RATE
from .codec import Codec, Payload
from .errors import DecodeFailed, NoMessageYet
from .protocols import ProtocolId

# Module-level logger
_logger = logging.getLogger(__name__)

# Seconds of audio each ring holds by default
DEFAULT_BUFFER_SECONDS = 5


class RingBuffer:
    """
    Fixed-capacity sample FIFO backed by a numpy array.

    Writing past capacity overwrites the oldest samples.
    """

    def __init__(self, capacity: int, dtype=np.float32):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._data = np.zeros(capacity, dtype=dtype)
        self._start = 0
        self._size = 0
        self.dropped = 0  # Total samples discarded on overflow

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def __len__(self) -> int:
        return self._size

    def clear(self):
        self._start = 0
        self._size = 0

    def write(self, samples: np.ndarray) -> int:
        """
        Append samples, dropping the oldest on overflow.

        Returns:
            Number of samples dropped by this write
        """
        samples = np.asarray(samples, dtype=self._data.dtype).reshape(-1)
        capacity = self.capacity

        # Only the newest `capacity` samples can survive
        if len(samples) > capacity:
            skipped = len(samples) - capacity
            samples = samples[-capacity:]
        else:
            skipped = 0

        overflow = max(0, self._size + len(samples) - capacity)
        if overflow:
            self._start = (self._start + overflow) % capacity
            self._size -= overflow

        end = (self._start + self._size) % capacity
        first = min(len(samples), capacity - end)
        self._data[end:end + first] = samples[:first]
        self._data[:len(samples) - first] = samples[first:]
        self._size += len(samples)

        dropped = skipped + overflow
        self.dropped += dropped
        return dropped

    def peek(self, n: Optional[int] = None) -> np.ndarray:
        """Copy up to n of the oldest samples without consuming them."""
        n = self._size if n is None else min(n, self._size)
        idx = (self._start + np.arange(n)) % self.capacity
        return self._data[idx]

    def read(self, n: Optional[int] = None) -> np.ndarray:
        """Consume up to n of the oldest samples."""
        out = self.peek(n)
        self._start = (self._start + len(out)) % self.capacity
        self._size -= len(out)
        if self._size == 0:
            self._start = 0
        return out


class StreamState(Enum):
    """Adapter state, per direction."""

    IDLE = "idle"  # nothing buffered
    ARMED = "armed"  # samples buffered, waiting for a message boundary
    DRAINING = "draining"  # message boundary reached, delivering


class StreamingAdapter:
    """
    Continuous receive and transmit on top of a Codec.

    Receive: push captured audio with ``feed()`` and collect messages with
    ``poll()``. Transmit: queue payloads with ``submit()`` and pull a steady
    stream of samples for the output device with ``pull()``.
    """

    def __init__(
        self,
        codec: Codec,
        capacity: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Initialize adapter.

        Args:
            codec: Codec to drive (not owned, the caller closes it)
            capacity: Samples per ring (default: 5 seconds at the codec's rate)
            chunk_size: Samples per decode call (default: samples_per_frame)
        """
        self.codec = codec
        params = codec.parameters

        if capacity is None:
            rate = params.sample_rate_in or SAMPLE_RATE
            capacity = int(rate * DEFAULT_BUFFER_SECONDS)
        self.chunk_size = chunk_size or params.samples_per_frame

        self._rx = RingBuffer(capacity, params.sample_format_in.dtype)
        self._tx = RingBuffer(capacity, params.sample_format_out.dtype)
        self._silence = params.sample_format_out.silence()

        self.rx_state = StreamState.IDLE
        self.tx_state = StreamState.IDLE

        # Statistics
        self.messages_received = 0
        self.messages_sent = 0
        self.decode_errors = 0

    # -- receive -----------------------------------------------------------

    def feed(self, samples: np.ndarray) -> int:
        """
        Buffer captured samples for decoding.

        Returns:
            Samples dropped because the ring overflowed
        """
        dropped = self._rx.write(samples)
        if dropped:
            _logger.warning(f"RX ring overflow, dropped {dropped} oldest samples")
        if len(self._rx):
            self.rx_state = StreamState.ARMED
        return dropped

    def poll(self) -> list[bytes]:
        """
        Decode every whole chunk buffered so far.

        A chunk the engine fails to decode is logged and counted, and
        draining continues with the next one.

        Returns:
            Messages completed during this call, oldest first
        """
        messages = []
        while len(self._rx) >= self.chunk_size:
            chunk = self._rx.read(self.chunk_size)
            try:
                message = self.codec.decode(chunk)
            except NoMessageYet:
                continue
            except DecodeFailed as e:
                self.decode_errors += 1
                _logger.warning(f"Dropped undecodable chunk: {e}")
                continue

            self.messages_received += 1
            messages.append(message)
            _logger.info(f"Received {len(message)}-byte message")

        if messages:
            self.rx_state = StreamState.DRAINING
        elif len(self._rx):
            self.rx_state = StreamState.ARMED
        else:
            self.rx_state = StreamState.IDLE
        return messages

    @property
    def rx_buffered(self) -> int:
        return len(self._rx)

    @property
    def rx_dropped(self) -> int:
        return self._rx.dropped

    # -- transmit ----------------------------------------------------------

    def submit(
        self,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
    ) -> int:
        """
        Encode a payload and queue its waveform for output.

        Returns:
            Samples dropped because the ring overflowed
        """
        waveform = self.codec.encode(payload, protocol, volume)
        dropped = self._tx.write(waveform)
        if dropped:
            _logger.warning(f"TX ring overflow, dropped {dropped} oldest samples")
        self.messages_sent += 1
        if len(self._tx):
            if self.tx_state is StreamState.IDLE:
                self.tx_state = StreamState.ARMED
        return dropped

    def pull(self, n: int) -> np.ndarray:
        """
        Take exactly n samples for the output device.

        Queued waveform samples come first; the rest is silence.
        """
        out = np.full(n, self._silence, dtype=self._tx.dtype)
        queued = self._tx.read(n)
        out[:len(queued)] = queued

        if len(self._tx):
            self.tx_state = StreamState.DRAINING
        else:
            self.tx_state = StreamState.IDLE
        return out

    @property
    def tx_buffered(self) -> int:
        return len(self._tx)

    @property
    def tx_dropped(self) -> int:
        return self._tx.dropped

    def reset(self):
        """Discard buffered audio in both directions."""
        self._rx.clear()
        self._tx.clear()
        self.rx_state = StreamState.IDLE
        self.tx_state = StreamState.IDLE

    def get_statistics(self) -> dict:
        """
        Get adapter statistics.

        Returns:
            Dict with message counts, decode errors, buffered and dropped
            samples per direction
        """
        return {
            "messages_received": self.messages_received,
            "messages_sent": self.messages_sent,
            "decode_errors": self.decode_errors,
            "rx_buffered": self.rx_buffered,
            "rx_dropped": self.rx_dropped,
            "tx_buffered": self.tx_buffered,
            "tx_dropped": self.tx_dropped,
        }
