from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol, runtime_checkable

ROLL_BUTTON = "rollButton"
BOARD_INTERACTION = "boardInteraction"
BOARD_CANVAS = "boardCanvas"
PIECE_SELECTOR = "pieceSelector"
GAME_LOG = "gameLog"

# Trouble runs without a turn timer
REQUIRED_UI_COMPONENTS = (PIECE_SELECTOR, ROLL_BUTTON, BOARD_INTERACTION, GAME_LOG)


@runtime_checkable
class RollControl(Protocol):
    def activate(self) -> None:
        ...

    def deactivate(self) -> None:
        ...


@runtime_checkable
class BoardInteraction(Protocol):
    def highlight_valid_moves(self, space_ids: Iterable[str]) -> None:
        ...

    def clear_highlights(self) -> None:
        ...


class UIComponents:
    """Lookup of host UI components by id. Missing components are simply absent."""

    def __init__(self, components: Optional[Mapping[str, Any]] = None):
        self._components = dict(components or {})

    def get(self, component_id: str) -> Any:
        return self._components.get(component_id)

    def roll_control(self) -> Optional[RollControl]:
        comp = self.get(ROLL_BUTTON)
        return comp if isinstance(comp, RollControl) else None

    def board(self) -> Optional[BoardInteraction]:
        for component_id in (BOARD_INTERACTION, BOARD_CANVAS):
            comp = self.get(component_id)
            if isinstance(comp, BoardInteraction):
                return comp
        return None
