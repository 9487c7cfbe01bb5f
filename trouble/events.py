"""
Engine events.
Outbound events describe what happened during a turn (fire-and-forget);
inbound events are the host's clicks, delivered through the same bus.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, DefaultDict, Dict, List

from loguru import logger


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


Handler = Callable[[Dict[str, Any]], None]


# ===== Event Type Constants =====

# Outbound
PLAYER_ROLL = "playerRoll"
EXTRA_ROLL_GRANTED = "extraRollGranted"
PIECE_MOVED = "pieceMoved"
PIECE_CAPTURED = "pieceCaptured"
TURN_ENDED = "turnEnded"
GAME_WON = "gameWon"
PLAYER_WON = "playerWon"

# Inbound
PIECE_CLICKED = "pieceClicked"
SPACE_CLICKED = "spaceClicked"


# ===== Event Factory Functions =====

def player_roll(game_state: Any, result: int) -> GameEvent:
    return GameEvent(PLAYER_ROLL, {"gameState": game_state, "result": result})


def extra_roll_granted(player_id: str) -> GameEvent:
    return GameEvent(EXTRA_ROLL_GRANTED, {"playerId": player_id})


def piece_moved(player_id: str, piece_id: str, to_space_id: str, state: str) -> GameEvent:
    return GameEvent(PIECE_MOVED, {
        "playerId": player_id,
        "pieceId": piece_id,
        "toSpaceId": to_space_id,
        "state": state,
    })


def piece_captured(captured_piece_id: str, player_index: int) -> GameEvent:
    return GameEvent(PIECE_CAPTURED, {
        "capturedPieceId": captured_piece_id,
        "playerIndex": player_index,
    })


def turn_ended(player_id: str | None) -> GameEvent:
    return GameEvent(TURN_ENDED, {"playerId": player_id})


def game_won(winner: Dict[str, Any]) -> GameEvent:
    """``winner`` is the serialized winning player; other players keep racing."""
    return GameEvent(GAME_WON, {"winner": winner})


def player_won(player_id: str) -> GameEvent:
    return GameEvent(PLAYER_WON, {"playerId": player_id})


# ===== Bus =====

@dataclass(eq=False)
class Subscription:
    """Handle for one registered handler. Releasing twice is harmless."""
    bus: "EventBus"
    event_type: str
    handler: Handler
    active: bool = True

    def release(self) -> None:
        if self.active:
            self.bus.off(self.event_type, self.handler)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.release()


@dataclass
class EventBus:
    _handlers: DefaultDict[str, List[Handler]] = field(
        default_factory=lambda: defaultdict(list), repr=False
    )
    history: List[GameEvent] = field(default_factory=list, repr=False)
    record_history: bool = False

    def on(self, event_type: str, handler: Handler) -> Subscription:
        self._handlers[event_type].append(handler)
        return Subscription(self, event_type, handler)

    def off(self, event_type: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    def emit(self, event: GameEvent) -> None:
        if self.record_history:
            self.history.append(event)
        for handler in list(self._handlers.get(event.type, ())):
            try:
                handler(event.payload)
            except Exception as e:
                logger.exception(f"Handler for '{event.type}' failed: {e}")

    def emit_type(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.emit(GameEvent(event_type, payload))
