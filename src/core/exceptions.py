"""
Custom exceptions used across layers.

Everything derives from GameError, so the service layer (and tests) can catch the root.
"""


class GameError(Exception):
    """Base exception for everything raised by the game core."""


# --- GRAPH ---
class GraphError(GameError):
    pass


class InvalidVertexError(GraphError):
    pass


class InvalidSourceError(GraphError):
    pass


class InvalidDestinationError(GraphError):
    pass


# --- BOARD / PIECES ---
class BoardConfigError(GameError):
    pass


class BoardStateError(GameError):
    """Occupancy and piece state went out of sync. Signals a bug in validation ordering, not a user error."""


class CellOccupiedError(BoardStateError):
    pass


class CellVacantError(BoardStateError):
    pass


class PieceStateError(BoardStateError):
    pass


# --- GAME ---
class InvalidMoveError(GameError):
    pass


class NotYourTurnError(GameError):
    pass


class GameStateError(GameError):
    pass


class GameNotReadyError(GameStateError):
    """A new turn was started while the previous turn's hash was still being computed."""


# --- PEER PROTOCOL ---
class ProtocolError(GameError):
    pass


class DesyncError(ProtocolError):
    """Hash chain broken: the peers no longer agree on the game state."""


class RejectedMoveError(ProtocolError):
    """The peer sent a move that does not validate against the local game."""


# --- PERSISTENCE ---
class RepositoryError(GameError):
    pass
