"""
Trouble (Pop-O-Matic) rules engine.
Move legality, capture, finish-lane handling and turn progression.
"""

from .board import Board
from .config import Config, config
from .engine import TroubleEngine
from .events import EventBus, GameEvent
from .game import Game
from .piece import Piece
from .player import Player
from .plugin import RulesPlugin
from .simulator import SimulationResult, Simulator
from .state import GameState
from .types import ChoiceSelection, Move, MoveResult, PendingChoice, PieceState, TurnPhase

__all__ = [
    "Board",
    "ChoiceSelection",
    "Config",
    "config",
    "EventBus",
    "Game",
    "GameEvent",
    "GameState",
    "Move",
    "MoveResult",
    "PendingChoice",
    "Piece",
    "PieceState",
    "Player",
    "RulesPlugin",
    "SimulationResult",
    "Simulator",
    "TroubleEngine",
    "TurnPhase",
]
