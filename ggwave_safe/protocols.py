"""
Protocol catalog.

Named modulation schemes and the opaque codes the engine expects for them.
"""

from enum import Enum, IntEnum


class ProtocolId(IntEnum):
    """
    Engine protocol identifiers.

    Values are opaque codes, not meant for arithmetic. Codes outside the
    catalog cannot be constructed, so unsupported values never reach the
    engine.
    """

    AUDIBLE_NORMAL = 0
    AUDIBLE_FAST = 1
    AUDIBLE_FASTEST = 2
    ULTRASOUND_NORMAL = 3
    ULTRASOUND_FAST = 4
    ULTRASOUND_FASTEST = 5
    DT_NORMAL = 6
    DT_FAST = 7
    DT_FASTEST = 8
    MT_NORMAL = 9
    MT_FAST = 10
    MT_FASTEST = 11

    @property
    def slug(self) -> str:
        """CLI-style name, e.g. ``audible-fast``."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def from_name(cls, name: str) -> "ProtocolId":
        """
        Resolve a protocol from its slug or enum name.

        Raises:
            ValueError: if the name is not in the catalog
        """
        key = name.strip().upper().replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            choices = ", ".join(p.slug for p in cls)
            raise ValueError(f"Unknown protocol '{name}': choose from {choices}") from None


class Direction(Enum):
    """Side of the engine a protocol setting applies to."""

    RX = "rx"
    TX = "tx"


_CATALOG = tuple(ProtocolId)


def catalog() -> tuple[ProtocolId, ...]:
    """All protocols known to the engine, in code order."""
    return _CATALOG
