"""
asyncio wrapper around Codec.

Engine calls block, so they run in an executor. An asyncio.Lock is held
across each await: a suspended call still owns the handle. Timeouts stop the
wait, not the engine call; the call finishes in its worker and keeps the
handle's lock until it returns.
"""

import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import AsyncIterable, AsyncIterator, Optional

from . import DEFAULT_VOLUME
from .codec import Codec, Payload, Samples
from .container import ContainerFile
from .engine import Engine
from .errors import NoMessageYet
from .handle import EngineHandle
from .parameters import Parameters
from .protocols import ProtocolId

# Module-level logger
_logger = logging.getLogger(__name__)


class AsyncCodec:
    """Non-blocking facade over a Codec."""

    def __init__(self, codec: Codec, executor: Optional[Executor] = None):
        """
        Args:
            codec: Codec to drive, owned by the wrapper from now on
            executor: Where blocking calls run (None = the loop's default)
        """
        self._codec = codec
        self._executor = executor
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        params: Optional[Parameters] = None,
        engine: Optional[Engine] = None,
        executor: Optional[Executor] = None,
    ) -> "AsyncCodec":
        """Create the engine instance off the event loop and wrap it."""
        loop = asyncio.get_running_loop()
        handle = await loop.run_in_executor(
            executor, functools.partial(EngineHandle.create, params, engine)
        )
        return cls(Codec(handle), executor)

    @property
    def codec(self) -> Codec:
        return self._codec

    @property
    def closed(self) -> bool:
        return self._codec.closed

    async def _run(self, func, *args, timeout: Optional[float] = None):
        loop = asyncio.get_running_loop()
        async with self._lock:
            future = loop.run_in_executor(self._executor, functools.partial(func, *args))
            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                _logger.warning(f"{func.__name__} timed out after {timeout}s, call still running")
                raise

    async def encode(
        self,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
        timeout: Optional[float] = None,
    ):
        """Codec.encode without blocking the loop."""
        return await self._run(self._codec.encode, payload, protocol, volume, timeout=timeout)

    async def decode(
        self,
        waveform: Samples,
        scratch: Optional[bytearray] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Codec.decode without blocking the loop."""
        return await self._run(self._codec.decode, waveform, scratch, timeout=timeout)

    async def encode_to_container(
        self,
        payload: Payload,
        protocol: ProtocolId = ProtocolId.AUDIBLE_FAST,
        volume: int = DEFAULT_VOLUME,
        timeout: Optional[float] = None,
    ) -> ContainerFile:
        """Codec.encode_to_container without blocking the loop."""
        return await self._run(
            self._codec.encode_to_container, payload, protocol, volume, timeout=timeout
        )

    async def decode_stream(self, chunks: AsyncIterable[Samples]) -> AsyncIterator[bytes]:
        """
        Decode an asynchronous stream of sample chunks.

        Yields:
            Each message as soon as it completes
        """
        async for chunk in chunks:
            if len(chunk) == 0:
                continue
            try:
                yield await self.decode(chunk)
            except NoMessageYet:
                continue

    async def aclose(self):
        """Destroy the engine instance once any in-flight call has finished."""
        loop = asyncio.get_running_loop()
        async with self._lock:
            await loop.run_in_executor(self._executor, self._codec.close)

    async def __aenter__(self) -> "AsyncCodec":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
