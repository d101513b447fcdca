"""
Shared fixtures: a deterministic stand-in for the native engine.
"""

import threading

import numpy as np
import pytest

from ggwave_safe import Codec, Engine, Parameters, SampleFormat, ProtocolId, Direction

MARKER = b"\xa5\x5a"
HEADER_LEN = 4  # marker (2) + protocol (1) + length (1)


def bytes_to_samples(data: bytes, fmt: SampleFormat) -> np.ndarray:
    """Map each byte to one sample; byte 128 is silence in every format."""
    values = np.frombuffer(bytes(data), dtype=np.uint8).astype(np.int32)
    if fmt is SampleFormat.U8:
        return values.astype(np.uint8)
    if fmt is SampleFormat.I8:
        return (values - 128).astype(np.int8)
    if fmt is SampleFormat.U16:
        return (values * 256).astype(np.uint16)
    if fmt is SampleFormat.I16:
        return ((values - 128) * 256).astype(np.int16)
    return ((values - 128) / 128.0).astype(np.float32)


def samples_to_bytes(samples: np.ndarray, fmt: SampleFormat) -> bytes:
    if fmt is SampleFormat.U8:
        values = samples.astype(np.int32)
    elif fmt is SampleFormat.I8:
        values = samples.astype(np.int32) + 128
    elif fmt is SampleFormat.U16:
        values = samples.astype(np.int32) // 256
    elif fmt is SampleFormat.I16:
        values = samples.astype(np.int32) // 256 + 128
    else:
        values = np.rint(samples.astype(np.float64) * 128.0 + 128.0).astype(np.int32)
    return np.clip(values, 0, 255).astype(np.uint8).tobytes()


class FakeEngine(Engine):
    """
    Engine function table with a trivial modem.

    A frame is marker, protocol, length, payload and an 8-bit checksum, one
    byte per sample, padded with silence to whole frames. Failure codes can
    be forced per entry point to exercise sentinel handling.
    """

    def __init__(self):
        self.instances = {}
        self.next_id = 0
        self.destroyed = []
        self.calls = []

        # Forced return values (None = behave normally)
        self.create_result = None
        self.encode_size_result = None
        self.encode_result = None
        self.decode_result = None

    def default_parameters(self) -> Parameters:
        return Parameters.default()

    def create(self, params: Parameters) -> int:
        self.calls.append(("create", params))
        if self.create_result is not None:
            return self.create_result
        if params.sample_rate > 96000 or params.sample_rate_in > 96000:
            return -1

        instance = self.next_id
        self.next_id += 1
        self.instances[instance] = {
            "params": params,
            "rx_buffer": bytearray(),
            "rx_mask": {},
            "tx_mask": {},
            "freq_start": {},
        }
        return instance

    def destroy(self, instance: int) -> None:
        if instance not in self.instances:
            raise AssertionError(f"instance {instance} destroyed twice")
        del self.instances[instance]
        self.destroyed.append(instance)

    def _frame(self, instance: int, payload: bytes, protocol: int) -> np.ndarray:
        params = self.instances[instance]["params"]
        checksum = sum(payload) & 0xFF
        frame = MARKER + bytes([protocol, len(payload)]) + payload + bytes([checksum])

        spf = params.samples_per_frame
        padded = -(-len(frame) // spf) * spf
        frame += bytes([128]) * (padded - len(frame))
        return bytes_to_samples(frame, params.sample_format_out)

    def encode_size(self, instance, payload, protocol, volume) -> int:
        self.calls.append(("encode_size", bytes(payload), protocol, volume))
        if self.encode_size_result is not None:
            return self.encode_size_result
        return self._frame(instance, payload, protocol).nbytes

    def encode(self, instance, payload, protocol, volume, out) -> int:
        self.calls.append(("encode", bytes(payload), protocol, volume))
        if self.encode_result is not None:
            return self.encode_result
        data = self._frame(instance, payload, protocol).tobytes()
        if len(data) > len(out):
            return -1
        out[:len(data)] = data
        return len(data)

    def decode(self, instance, samples, out) -> int:
        self.calls.append(("decode", len(samples)))
        if self.decode_result is not None:
            return self.decode_result

        state = self.instances[instance]
        fmt = state["params"].sample_format_in
        buf = state["rx_buffer"]
        buf += samples_to_bytes(np.frombuffer(samples, dtype=fmt.dtype), fmt)

        while True:
            start = buf.find(MARKER)
            if start < 0:
                del buf[:max(0, len(buf) - 1)]
                return 0
            del buf[:start]
            if len(buf) < HEADER_LEN:
                return 0

            protocol, length = buf[2], buf[3]
            total = HEADER_LEN + length + 1
            if len(buf) < total:
                return 0

            payload = bytes(buf[HEADER_LEN:HEADER_LEN + length])
            checksum = buf[total - 1]
            del buf[:total]

            if checksum != sum(payload) & 0xFF:
                return -1
            if not state["rx_mask"].get(protocol, True):
                continue
            if length > len(out):
                return -2
            out[:length] = payload
            return length

    def set_protocol_enabled(self, instance, protocol, enabled, direction) -> None:
        self.calls.append(("toggle", protocol, enabled, direction))
        key = "rx_mask" if direction is Direction.RX else "tx_mask"
        self.instances[instance][key][protocol] = enabled

    def set_protocol_freq_start(self, instance, protocol, freq_start, direction) -> None:
        self.instances[instance]["freq_start"][(protocol, direction)] = freq_start

    def rx_duration_frames(self, instance) -> int:
        state = self.instances[instance]
        return len(state["rx_buffer"]) // state["params"].samples_per_frame

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class SharedMaskEngine(FakeEngine):
    """FakeEngine whose protocol masks are process-wide, like libggwave."""

    global_protocol_masks = True

    def __init__(self):
        super().__init__()
        self.mask_lock = threading.RLock()
        self.mask_owner = None
        self.shared_rx_mask = {}
        self.shared_tx_mask = {}

    def create(self, params: Parameters) -> int:
        instance = super().create(params)
        if instance in self.instances:
            self.instances[instance]["rx_mask"] = self.shared_rx_mask
            self.instances[instance]["tx_mask"] = self.shared_tx_mask
        return instance


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def codec(engine):
    codec = Codec.open(engine=engine)
    yield codec
    codec.close()


@pytest.fixture
def all_protocols():
    return list(ProtocolId)


@pytest.fixture
def shared_engine():
    return SharedMaskEngine()
