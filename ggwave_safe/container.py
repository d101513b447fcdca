"""
WAV container output for encoded waveforms.

Write-only: decoding always works on raw samples, never on container bytes.
"""

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from .errors import InvalidParameters, UnsupportedFormat
from .parameters import SampleFormat

# Module-level logger
_logger = logging.getLogger(__name__)

# Sample format -> (soundfile subtype, bits per sample)
_SUBTYPES = {
    SampleFormat.U8: ("PCM_U8", 8),
    SampleFormat.I16: ("PCM_16", 16),
    SampleFormat.F32: ("FLOAT", 32),
}


@dataclass(frozen=True)
class ContainerFile:
    """
    A mono WAV file held in memory.

    Attributes:
        data: Complete file bytes
        sample_rate: Declared sample rate (Hz)
        channels: Channel count (always 1)
        bits_per_sample: Declared bit depth
        sample_format: Format the waveform was produced in
        num_samples: Samples in the data chunk
    """

    data: bytes
    sample_rate: int
    channels: int
    bits_per_sample: int
    sample_format: SampleFormat
    num_samples: int

    def _data_chunk(self) -> tuple[int, int]:
        """Offset of the data chunk payload and its declared size."""
        if self.data[:4] != b"RIFF" or self.data[8:12] != b"WAVE":
            raise ValueError("not a RIFF/WAVE file")

        offset = 12
        while offset + 8 <= len(self.data):
            chunk_id = self.data[offset:offset + 4]
            (chunk_size,) = struct.unpack("<I", self.data[offset + 4:offset + 8])
            if chunk_id == b"data":
                return offset + 8, chunk_size
            # Chunks are word aligned
            offset += 8 + chunk_size + (chunk_size & 1)

        raise ValueError("WAVE file has no data chunk")

    @property
    def header_size(self) -> int:
        """Bytes before the first sample."""
        return self._data_chunk()[0]

    @property
    def data_size(self) -> int:
        """Bytes of sample data."""
        return self._data_chunk()[1]

    @property
    def trailer_size(self) -> int:
        """Bytes after the sample data (RIFF pad byte or trailing chunks)."""
        return len(self.data) - self.header_size - self.data_size

    def save(self, output_path: str | Path):
        """Write the file bytes to disk."""
        Path(output_path).write_bytes(self.data)
        _logger.debug(f"Saved {len(self.data)} bytes to {output_path}")

    def __len__(self) -> int:
        return len(self.data)


class ContainerWriter:
    """
    Serializes waveforms into mono WAV files.

    U8 maps to 8-bit PCM, I16 to 16-bit PCM and F32 to 32-bit float. Formats
    with no WAV equivalent (I8, U16) are rejected.
    """

    def write(
        self,
        waveform: np.ndarray,
        sample_rate: float,
        sample_format: SampleFormat,
    ) -> ContainerFile:
        """
        Package samples as an in-memory WAV file.

        Args:
            waveform: Samples in the dtype of sample_format
            sample_rate: Sample rate to declare (Hz)
            sample_format: Format of the samples

        Returns:
            ContainerFile with the complete file bytes

        Raises:
            UnsupportedFormat: if the format has no WAV equivalent
            InvalidParameters: if sample_rate is not positive
        """
        sample_format = SampleFormat(sample_format)
        if sample_format not in _SUBTYPES:
            raise UnsupportedFormat(f"{sample_format.name} has no WAV container equivalent")
        if not sample_rate > 0:
            raise InvalidParameters(f"sample_rate must be > 0, got {sample_rate}")

        subtype, bits = _SUBTYPES[sample_format]
        samples = np.asarray(waveform, dtype=sample_format.dtype).reshape(-1)

        # soundfile writes from int16/int32/float arrays only; libsndfile
        # converts to the file subtype.
        if sample_format is SampleFormat.U8:
            samples = ((samples.astype(np.int16) - 128) << 8).astype(np.int16)

        buffer = io.BytesIO()
        sf.write(
            buffer,
            samples,
            int(round(sample_rate)),
            subtype=subtype,
            format="WAV",
        )

        container = ContainerFile(
            data=buffer.getvalue(),
            sample_rate=int(round(sample_rate)),
            channels=1,
            bits_per_sample=bits,
            sample_format=sample_format,
            num_samples=len(samples),
        )
        _logger.debug(
            f"Wrote WAV: {container.num_samples} samples, {bits}-bit, "
            f"{container.sample_rate} Hz, {len(container)} bytes"
        )
        return container

    def write_file(
        self,
        output_path: str | Path,
        waveform: np.ndarray,
        sample_rate: float,
        sample_format: SampleFormat,
    ) -> ContainerFile:
        """Package samples and save them as a WAV file."""
        container = self.write(waveform, sample_rate, sample_format)
        container.save(output_path)
        return container
