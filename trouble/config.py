import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from dotenv import load_dotenv

load_dotenv()

DICE_SIDES = 6
BRING_OUT_ROLL = 6  # also the roll that earns another turn


def _env_offsets() -> list[int]:
    raw = os.getenv("TROUBLE_START_OFFSETS", "0,7,14,21")
    return [int(x) for x in raw.split(",") if x.strip()]


@dataclass(slots=True)
class Config:
    PIECES_PER_PLAYER: int = int(os.getenv("TROUBLE_PIECES_PER_PLAYER", 4))
    TRACK_LENGTH: int = int(os.getenv("TROUBLE_TRACK_LENGTH", 28))
    FINISH_LENGTH: int = int(os.getenv("TROUBLE_FINISH_LENGTH", 4))
    # Track entry offset per player index (wraps when there are more players)
    START_OFFSETS: list[int] = field(default_factory=_env_offsets)

    # Derived (populated in __post_init__ due to slots)
    LAST_FINISH_INDEX: int = 0

    def __post_init__(self):
        if self.PIECES_PER_PLAYER < 1:
            raise ValueError("PIECES_PER_PLAYER must be positive")
        if self.TRACK_LENGTH < 1:
            raise ValueError("TRACK_LENGTH must be positive")
        if self.FINISH_LENGTH < 1:
            raise ValueError("FINISH_LENGTH must be positive")
        if not self.START_OFFSETS:
            raise ValueError("START_OFFSETS must not be empty")
        for offset in self.START_OFFSETS:
            if not 0 <= offset < self.TRACK_LENGTH:
                raise ValueError(
                    f"Start offset {offset} is outside the track (0..{self.TRACK_LENGTH - 1})"
                )
        self.LAST_FINISH_INDEX = self.FINISH_LENGTH - 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Config":
        """Build a config from an engine config section (camelCase keys).

        Missing, zero or empty values fall back to the defaults.
        """
        data = data or {}
        defaults = cls()
        offsets = data.get("startOffsets")
        if not isinstance(offsets, (list, tuple)) or not offsets:
            offsets = list(defaults.START_OFFSETS)
        return cls(
            PIECES_PER_PLAYER=int(data.get("piecesPerPlayer") or defaults.PIECES_PER_PLAYER),
            TRACK_LENGTH=int(data.get("trackLength") or defaults.TRACK_LENGTH),
            FINISH_LENGTH=int(data.get("finishLength") or defaults.FINISH_LENGTH),
            START_OFFSETS=[int(x) for x in offsets],
        )

    @classmethod
    def from_map(cls, map_data: Mapping[str, Any]) -> "Config":
        """Read ``engine.config`` out of a map manifest."""
        engine = map_data.get("engine") or {}
        engine_type = engine.get("type")
        if engine_type not in (None, "trouble"):
            raise ValueError(f"Map targets engine '{engine_type}', not 'trouble'")
        return cls.from_mapping(engine.get("config"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "piecesPerPlayer": self.PIECES_PER_PLAYER,
            "trackLength": self.TRACK_LENGTH,
            "finishLength": self.FINISH_LENGTH,
            "startOffsets": list(self.START_OFFSETS),
        }


config = Config()
