"""
EngineHandle - single owner of one live engine instance.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .engine import Engine, default_engine
from .errors import InitializationError, UsageError
from .parameters import Parameters
from .protocols import ProtocolId, Direction, catalog

# Module-level logger
_logger = logging.getLogger(__name__)


class EngineHandle:
    """
    Owns exactly one engine instance created from a Parameters snapshot.

    The instance is destroyed exactly once, by ``close()``, by leaving a
    ``with`` block, or when the handle is garbage collected. A closed handle
    rejects every operation with UsageError.

    All engine calls go through ``exclusive()``, which holds the handle's
    lock, so two threads can never drive the same instance at once.

    The receive and transmit protocol masks are owned by the handle. They
    are initialised (all protocols enabled) at creation and change only
    through the toggle methods. When the engine keeps its masks in
    process-wide tables, ``exclusive()`` writes this handle's masks back
    into them whenever another handle touched them last.
    """

    def __init__(self, engine: Engine, instance: int, params: Parameters):
        # Use EngineHandle.create(); this only adopts an already-live instance.
        self._engine = engine
        self._instance: Optional[int] = instance
        self._params = params
        self._lock = threading.RLock()
        self._rx_mask = {protocol: True for protocol in catalog()}
        self._tx_mask = {protocol: True for protocol in catalog()}
        # Identifies this handle as the owner of shared engine tables
        self._token = object()

    @classmethod
    def create(
        cls,
        params: Optional[Parameters] = None,
        engine: Optional[Engine] = None,
    ) -> "EngineHandle":
        """
        Validate parameters and ask the engine for a new instance.

        Args:
            params: Configuration (None = Parameters.default())
            engine: Engine function table (None = the native engine)

        Returns:
            A live handle

        Raises:
            InvalidParameters: if params fail validation
            InitializationError: if the engine refuses to create the instance
        """
        params = (params or Parameters.default()).validate()
        engine = engine or default_engine()

        instance = engine.create(params)
        if instance is None or instance < 0:
            raise InitializationError(
                f"engine refused to create an instance (returned {instance}) for {params}"
            )

        handle = cls(engine, instance, params)
        try:
            with handle.exclusive() as live:
                # Shared tables were already brought in line on entry
                if not engine.global_protocol_masks:
                    handle._push_masks(live, (Direction.RX,))
        except BaseException:
            handle.close()
            raise

        _logger.debug(f"Created engine instance {instance}")
        return handle

    # -- lifecycle ---------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._instance is None

    @property
    def parameters(self) -> Parameters:
        return self._params

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self):
        """Destroy the engine instance. Further calls are no-ops."""
        with self._lock:
            if self._instance is None:
                return
            instance, self._instance = self._instance, None
            self._engine.destroy(instance)
        _logger.debug(f"Destroyed engine instance {instance}")

    def __enter__(self) -> "EngineHandle":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __del__(self):
        if getattr(self, "_instance", None) is not None:
            self.close()

    def __copy__(self):
        raise TypeError("EngineHandle owns a live engine instance and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("EngineHandle owns a live engine instance and cannot be copied")

    def __reduce__(self):
        raise TypeError("EngineHandle owns a live engine instance and cannot be pickled")

    @contextmanager
    def exclusive(self) -> Iterator[int]:
        """
        Hold the handle for the duration of an engine call.

        Yields:
            The raw instance id

        Raises:
            UsageError: if the handle is closed
        """
        with self._lock:
            if self._instance is None:
                raise UsageError("engine handle is closed")
            if not self._engine.global_protocol_masks:
                yield self._instance
                return

            with self._engine.mask_lock:
                if self._engine.mask_owner is not self._token:
                    self._push_masks(self._instance)
                    self._engine.mask_owner = self._token
                yield self._instance

    def _push_masks(self, instance: int, directions=(Direction.RX, Direction.TX)):
        masks = {Direction.RX: self._rx_mask, Direction.TX: self._tx_mask}
        for direction in directions:
            for protocol, enabled in masks[direction].items():
                self._engine.set_protocol_enabled(instance, int(protocol), enabled, direction)

    # -- protocol masks ----------------------------------------------------

    def set_rx_protocol_enabled(self, protocol: ProtocolId, enabled: bool):
        """Enable or disable detection of one protocol. Others keep their state."""
        self._toggle(protocol, enabled, Direction.RX)

    def set_tx_protocol_enabled(self, protocol: ProtocolId, enabled: bool):
        """Enable or disable one protocol on the transmit side."""
        self._toggle(protocol, enabled, Direction.TX)

    def enable_all_rx_protocols(self):
        """Re-enable detection of every catalog protocol."""
        for protocol in catalog():
            self._toggle(protocol, True, Direction.RX)

    def is_rx_protocol_enabled(self, protocol: ProtocolId) -> bool:
        return self._rx_mask[ProtocolId(protocol)]

    def is_tx_protocol_enabled(self, protocol: ProtocolId) -> bool:
        return self._tx_mask[ProtocolId(protocol)]

    @property
    def rx_protocols(self) -> frozenset[ProtocolId]:
        """Protocols currently enabled for detection."""
        return frozenset(p for p, on in self._rx_mask.items() if on)

    def _toggle(self, protocol: ProtocolId, enabled: bool, direction: Direction):
        protocol = ProtocolId(protocol)
        mask = self._rx_mask if direction is Direction.RX else self._tx_mask
        with self.exclusive() as instance:
            self._engine.set_protocol_enabled(instance, int(protocol), bool(enabled), direction)
            mask[protocol] = bool(enabled)
        _logger.debug(f"{direction.value} protocol {protocol.slug} -> {'on' if enabled else 'off'}")

    # -- passthroughs ------------------------------------------------------

    def set_protocol_freq_start(
        self,
        protocol: ProtocolId,
        freq_start: int,
        direction: Direction = Direction.RX,
    ):
        """Move a protocol's starting frequency bin on one side of the engine."""
        protocol = ProtocolId(protocol)
        with self.exclusive() as instance:
            self._engine.set_protocol_freq_start(instance, int(protocol), int(freq_start), direction)

    def rx_duration_frames(self) -> int:
        """Frames analysed by the receiver for the message in progress."""
        with self.exclusive() as instance:
            return self._engine.rx_duration_frames(instance)

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"instance={self._instance}"
        return f"EngineHandle({state}, mode={self._params.operating_mode!r})"
