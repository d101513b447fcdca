"""
Tests for WAV container output.
"""

import io

import numpy as np
import pytest
import soundfile as sf

from ggwave_safe import (
    ContainerWriter,
    InvalidParameters,
    SampleFormat,
    UnsupportedFormat,
)


@pytest.fixture
def writer():
    return ContainerWriter()


def sine(n: int = 4800) -> np.ndarray:
    t = np.arange(n) / 48000.0
    return (0.5 * np.sin(2 * np.pi * 1000.0 * t)).astype(np.float32)


class TestContainerWriter:
    """Test waveform serialization."""

    def test_f32_header_matches_inputs(self, writer):
        waveform = sine()
        container = writer.write(waveform, 48000.0, SampleFormat.F32)

        assert container.sample_rate == 48000
        assert container.channels == 1
        assert container.bits_per_sample == 32

        info = sf.info(io.BytesIO(container.data))
        assert info.samplerate == 48000
        assert info.channels == 1
        assert info.subtype == "FLOAT"
        assert info.frames == len(waveform)

    def test_f32_byte_length(self, writer):
        waveform = sine()
        container = writer.write(waveform, 48000.0, SampleFormat.F32)

        assert container.data_size == len(waveform) * 4
        assert len(container.data) == container.header_size + container.data_size
        assert container.trailer_size == 0

    def test_i16(self, writer):
        waveform = (sine() * 32767).astype(np.int16)
        container = writer.write(waveform, 44100.0, SampleFormat.I16)

        info = sf.info(io.BytesIO(container.data))
        assert info.samplerate == 44100
        assert info.subtype == "PCM_16"
        assert container.bits_per_sample == 16
        assert container.data_size == len(waveform) * 2
        assert len(container.data) == container.header_size + container.data_size

        samples, _ = sf.read(io.BytesIO(container.data), dtype="int16")
        np.testing.assert_array_equal(samples, waveform)

    def test_u8(self, writer):
        waveform = np.arange(256, dtype=np.uint8)
        container = writer.write(waveform, 8000.0, SampleFormat.U8)

        info = sf.info(io.BytesIO(container.data))
        assert info.subtype == "PCM_U8"
        assert container.bits_per_sample == 8
        assert container.data_size == 256

        # 8-bit WAV samples are stored unsigned, as-is
        start = container.header_size
        assert container.data[start:start + 256] == waveform.tobytes()

    def test_f32_samples_preserved(self, writer):
        waveform = sine(1000)
        container = writer.write(waveform, 48000.0, SampleFormat.F32)
        samples, rate = sf.read(io.BytesIO(container.data), dtype="float32")
        assert rate == 48000
        np.testing.assert_array_equal(samples, waveform)

    @pytest.mark.parametrize("fmt", [SampleFormat.I8, SampleFormat.U16])
    def test_no_container_equivalent(self, writer, fmt):
        with pytest.raises(UnsupportedFormat):
            writer.write(np.zeros(10, dtype=fmt.dtype), 48000.0, fmt)

    def test_invalid_sample_rate(self, writer):
        with pytest.raises(InvalidParameters):
            writer.write(sine(), 0.0, SampleFormat.F32)

    def test_write_file(self, writer, tmp_path):
        path = tmp_path / "tone.wav"
        container = writer.write_file(path, sine(), 48000.0, SampleFormat.F32)
        assert path.read_bytes() == container.data
        assert sf.info(str(path)).frames == container.num_samples
