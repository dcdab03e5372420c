"""
Type definitions used across layers
"""

from enum import StrEnum


class PieceState(StrEnum):
    UNPLACED = "unplaced"
    PLACED = "placed"
    REMOVED = "removed"


class GamePhase(StrEnum):
    PLACEMENT = "placement"
    MOVEMENT = "movement"
    CAPTURE = "capture"
    GAME_OVER = "game_over"


class GameAction(StrEnum):
    PLACE = "place"
    MOVE = "move"
    REMOVE = "remove"


class PeerRole(StrEnum):
    HOST = "host"
    CLIENT = "client"


class PeerCommand(StrEnum):
    HELO = "HELO"
    EHLO = "EHLO"
    PLAY_WITH_ME = "PLAY_WITH_ME"
    I_WILL_PLAY_WITH_YOU = "I_WILL_PLAY_WITH_YOU"
    I_WONT_PLAY_WITH_YOU = "I_WONT_PLAY_WITH_YOU"
    PEER_BLOCKED = "PEER_BLOCKED"
    PLAY = "PLAY"
    YOUR_TURN = "YOUR_TURN"
    OK = "OK"
    ERROR = "ERROR"
    HASH_MISMATCH = "HASH_MISMATCH"
    GAME_OVER = "GAME_OVER"
    MOVE = "MOVE"
    RESYNC_REQUEST = "RESYNC_REQUEST"
    RESYNC_RESPONSE = "RESYNC_RESPONSE"
