"""
Command-line entry points.

    ggwave-encode "hello" -o hello.wav
    ggwave-decode capture.raw -f f32
"""

import logging
import sys

import click
import numpy as np

from . import DEFAULT_VOLUME, SAMPLE_RATE
from .codec import Codec
from .engine import default_engine
from .errors import GGWaveError
from .parameters import OperatingMode, Parameters, SampleFormat
from .protocols import ProtocolId
from .streaming import StreamingAdapter

FORMAT_CHOICES = {
    "u8": SampleFormat.U8,
    "i16": SampleFormat.I16,
    "f32": SampleFormat.F32,
}


def _setup_logging(verbose: bool):
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


@click.command()
@click.argument("message", type=str)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False),
    default="ggwave.wav",
    help="Output file path",
)
@click.option(
    "-p", "--protocol",
    type=click.Choice([p.slug for p in ProtocolId]),
    default=ProtocolId.AUDIBLE_FAST.slug,
    help="Transmission protocol (default: audible-fast)",
)
@click.option(
    "-V", "--volume",
    type=int,
    default=DEFAULT_VOLUME,
    help=f"Volume 0-100 (default: {DEFAULT_VOLUME})",
)
@click.option(
    "-r", "--sample-rate",
    type=float,
    default=float(SAMPLE_RATE),
    help=f"Output sample rate in Hz (default: {SAMPLE_RATE})",
)
@click.option(
    "-f", "--format", "sample_format",
    type=click.Choice(list(FORMAT_CHOICES)),
    default="f32",
    help="Output sample format (default: f32)",
)
@click.option(
    "--raw",
    is_flag=True,
    help="Write raw samples instead of a WAV file",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
def encode_main(
    message: str,
    output: str,
    protocol: str,
    volume: int,
    sample_rate: float,
    sample_format: str,
    raw: bool,
    verbose: bool,
):
    """
    Encode MESSAGE as sound.

    Examples:

        ggwave-encode "hello" -o hello.wav

        ggwave-encode "hi" -p ultrasound-fastest -f i16 -o hi.wav

        ggwave-encode "data" --raw -o data.raw
    """
    _setup_logging(verbose)

    params = Parameters.default().replace(
        sample_rate_out=sample_rate,
        sample_format_out=FORMAT_CHOICES[sample_format],
        operating_mode=OperatingMode.TX,
    )

    try:
        with Codec.open(params, default_engine()) as codec:
            if raw:
                waveform = codec.encode(message, ProtocolId.from_name(protocol), volume)
                waveform.tofile(output)
                size = waveform.nbytes
            else:
                container = codec.encode_to_file(
                    output, message, ProtocolId.from_name(protocol), volume
                )
                size = len(container)
    except GGWaveError as e:
        click.echo(f"Error encoding message: {e}", err=True)
        sys.exit(1)

    if verbose:
        click.echo(f"  Protocol: {protocol}")
        click.echo(f"  Sample rate: {sample_rate:g} Hz ({sample_format})")
        click.echo(f"  Size: {size} bytes")
    click.echo(f"✓ Generated {output}")


@click.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-f", "--format", "sample_format",
    type=click.Choice(list(FORMAT_CHOICES)),
    default="f32",
    help="Sample format of the raw input (default: f32)",
)
@click.option(
    "-r", "--sample-rate",
    type=float,
    default=float(SAMPLE_RATE),
    help=f"Input sample rate in Hz (default: {SAMPLE_RATE})",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output with statistics",
)
def decode_main(input_path: str, sample_format: str, sample_rate: float, verbose: bool):
    """
    Decode messages from a raw sample file.

    The file must hold headerless mono samples, not a WAV container.
    """
    _setup_logging(verbose)

    fmt = FORMAT_CHOICES[sample_format]
    params = Parameters.default().replace(
        sample_rate_in=sample_rate,
        sample_format_in=fmt,
        operating_mode=OperatingMode.RX,
    )
    samples = np.fromfile(input_path, dtype=fmt.dtype)

    found = 0
    try:
        with Codec.open(params, default_engine()) as codec:
            adapter = StreamingAdapter(codec)
            # Process 1 second at a time
            block = int(sample_rate)
            for position in range(0, len(samples), block):
                adapter.feed(samples[position:position + block])
                for message in adapter.poll():
                    found += 1
                    click.echo(message.decode("utf-8", errors="replace"))
            stats = adapter.get_statistics()
    except GGWaveError as e:
        click.echo(f"Error decoding {input_path}: {e}", err=True)
        sys.exit(1)

    if verbose:
        click.echo(
            f"Messages: {found}, decode errors: {stats['decode_errors']}, "
            f"dropped samples: {stats['rx_dropped']}",
            err=True,
        )
    if not found:
        click.echo("No message found", err=True)
        sys.exit(2)
