"""
The Game class is the entrypoint into the domain layer for the sync layer.
It is responsible for orchestrating all the business logic required to play a turn of the board game:
turn order, the phase state machine, and the ledger of state hashes (one per completed turn)
that lets two peers prove they are still looking at the same game.
"""

import logging
from typing import Any, Callable, Optional, Self

from src.core.exceptions import (
    GameError,
    GameNotReadyError,
    GameStateError,
    NotYourTurnError,
)
from src.core.hashing import Crypto, get_hash, serialize
from src.core.shared_types import GameAction, GamePhase, PieceState
from src.morris import rules
from src.morris.board import Board, NineBoard
from src.morris.moves import Move
from src.morris.pieces import Cell, GamePiece, Player

logger = logging.getLogger(__name__)

# called with (new turn number, hash of the state the completed turn produced)
TurnListener = Callable[[int, str], None]


class NinePeersMorris:
    # --- DOMAIN LAYER API CALLED BY THE SYNC LAYER ---

    def __init__(
        self,
        me: Player,
        them: Player,
        crypto: Crypto,
        board: Optional[Board] = None,
    ) -> None:
        if me is them or me.id == them.id:
            raise GameStateError("Players must be different.")

        # initiator first: both peers then dehydrate (and hash) the players in the same order
        self._players: list[Player] = [me, them] if me.is_initiator else [them, me]
        self._local_player = me
        self._crypto = crypto
        self._board = board or NineBoard(self._players)
        self._current_player = self._players[0]
        self._winner: Optional[Player] = None
        self._turn = 0
        self._ready = True
        self._turn_listeners: list[TurnListener] = []

        self.phase = GamePhase.PLACEMENT
        self.state_hashes: dict[int, str] = {}

        # interaction state (local only, never part of the dehydrated state)
        self.selected_piece: Optional[GamePiece] = None
        self.valid_moves: tuple[Cell, ...] = ()
        self.mill_to_remove = False
        self.removable_pieces: tuple[GamePiece, ...] = ()

    # --- QUERIES ---
    @property
    def players(self) -> tuple[Player, ...]:
        return tuple(self._players)

    @property
    def board(self) -> Board:
        return self._board

    @property
    def current_player(self) -> Player:
        return self._current_player

    @property
    def local_player(self) -> Player:
        return self._local_player

    @property
    def winner(self) -> Optional[Player]:
        return self._winner

    @property
    def turn(self) -> int:
        return self._turn

    @property
    def is_ready(self) -> bool:
        return self._ready

    def is_my_turn(self) -> bool:
        return self._current_player is self._local_player

    def get_opponent(self, player: Player) -> Player:
        return self._players[1] if player is self._players[0] else self._players[0]

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self._players if p.id == player_id), None)

    def can_place_piece(self) -> bool:
        return (
            self.phase == GamePhase.PLACEMENT
            and self._current_player.next_piece is not None
        )

    def can_move_piece(self) -> bool:
        return self.phase == GamePhase.MOVEMENT

    def can_remove_piece(self) -> bool:
        return self.phase == GamePhase.CAPTURE and self.mill_to_remove

    def get_valid_moves(self, piece: GamePiece) -> tuple[Cell, ...]:
        return rules.get_valid_moves_for_piece(piece, self._board)

    def add_turn_listener(self, listener: TurnListener) -> None:
        self._turn_listeners.append(listener)

    # --- INTERACTION ---
    def handle_cell_click(self, cell_id: int) -> Optional[Move]:
        """
        Local player clicked a cell.
        ----

        Returns the move that got executed, or None when nothing happened
        (not your turn, a selection, an illegal target ...).
        """
        if not self.is_my_turn():
            return None
        return self._handle_cell_click(self._cell(cell_id))

    def handle_cell_click_forced(self, cell_id: int) -> Optional[Move]:
        """Same as handle_cell_click, without asking whose turn it is. Move legality is still checked."""
        return self._handle_cell_click(self._cell(cell_id))

    def apply_move(self, move: Move) -> bool:
        """
        Replay a move received from the peer
        ----

        ----
        The move is untrusted input: the transition is re-derived from its structural fields,
        checking everything a local click would check.

        Never raises for a bad move (a malicious peer should not be able to crash the session).
        The caller decides what to do with a False.
        """
        try:
            return self._apply_move(move)
        except GameNotReadyError:
            raise
        except GameError:
            logger.warning("Rejected move from peer: %s", move, exc_info=True)
            self._clear_selection()
            return False

    # --- SERIALIZATION / HASHING ---
    def dehydrate(self) -> dict[str, Any]:
        return {
            "players": [player.dehydrate() for player in self._players],
            "currentPlayerId": self._current_player.id,
            "winner": self._winner.id if self._winner else None,
            "turn": self._turn,
            "phase": str(self.phase),
        }

    def to_json(self) -> str:
        return serialize(self.dehydrate())

    def state_hash(self) -> str:
        return get_hash(self._crypto, self.to_json())

    def validate_hash(self, state_hash: str, turn: Optional[int] = None) -> bool:
        """Compare to the ledger entry of a completed turn (the last one by default)."""
        turn = self._turn - 1 if turn is None else turn
        return self.state_hashes.get(turn) == state_hash

    @classmethod
    def rehydrate(
        cls, snapshot: dict[str, Any], crypto: Crypto, local_player_id: str
    ) -> Self:
        """
        Rebuild a game from a dehydrated snapshot (ex. received with a resync).
        NOTE: The first player in the snapshot is the initiator.
        """
        try:
            players_data = snapshot["players"]
            if len(players_data) != 2:
                raise GameStateError(
                    f"Snapshot must contain 2 players, got {len(players_data)}."
                )
            players = [
                Player(data["id"], data["name"], is_initiator=(idx == 0))
                for idx, data in enumerate(players_data)
            ]
            me = next((p for p in players if p.id == local_player_id), None)
            if me is None:
                raise GameStateError(
                    f"Local player {local_player_id!r} not part of the snapshot."
                )
            them = players[1] if me is players[0] else players[0]
            game = cls(me, them, crypto)

            for player, data in zip(game._players, players_data):
                game._restore_pieces(player, data["pieces"])
                player.is_winner = bool(data["isWinner"])

            game._current_player = game._require_player(snapshot["currentPlayerId"])
            winner_id = snapshot["winner"]
            game._winner = game._require_player(winner_id) if winner_id else None
            game._turn = int(snapshot["turn"])
            game.phase = (
                GamePhase(snapshot["phase"])
                if snapshot.get("phase")
                else game._derive_phase()
            )
        except GameStateError:
            raise
        except (KeyError, TypeError, ValueError, GameError) as exc:
            # ex. pieces on a cell the board does not have, or two pieces on one cell
            raise GameStateError(f"Invalid game snapshot: {exc!r}") from exc

        if game.phase == GamePhase.CAPTURE:
            game.mill_to_remove = True
            game.removable_pieces = rules.get_removable_pieces(
                game.get_opponent(game._current_player), game._board
            )
        if game._turn > 0:
            game._add_hash(game.state_hash(), game._turn - 1)
        return game

    # -- PRIVATE HELPERS ---
    def _cell(self, cell_id: int) -> Cell:
        return self._board.get_cell(cell_id)

    def _require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise GameStateError(f"Unknown player {player_id!r}.")
        return player

    def _assert_ready(self) -> None:
        """The previous turn must be fully recorded before a new one starts."""
        if not self._ready:
            raise GameNotReadyError(
                f"Turn {self._turn} started while its state hash is still being computed."
            )

    def _handle_cell_click(self, cell: Cell) -> Optional[Move]:
        self._assert_ready()
        handlers = {
            GamePhase.PLACEMENT: self._click_placement,
            GamePhase.MOVEMENT: self._click_movement,
            GamePhase.CAPTURE: self._click_capture,
        }
        handler = handlers.get(self.phase)
        if handler is None:
            return None
        return handler(cell)

    def _apply_move(self, move: Move) -> bool:
        self._assert_ready()
        if self.phase == GamePhase.GAME_OVER:
            logger.info("Ignoring move %s: game is over.", move)
            return False
        if move.player_id != self._current_player.id:
            raise NotYourTurnError(f"Not {move.player_id}'s turn.")

        cell = self._cell(move.to_cell_id)
        result: Optional[Move] = None

        if move.action == GameAction.PLACE:
            if self.phase != GamePhase.PLACEMENT:
                return False
            next_piece = self._current_player.next_piece
            if move.piece_id is not None and (
                next_piece is None or next_piece.id != move.piece_id
            ):
                return False
            result = self._click_placement(cell)

        elif move.action == GameAction.MOVE:
            if self.phase != GamePhase.MOVEMENT or move.from_cell_id is None:
                return False
            origin = self._cell(move.from_cell_id)
            piece = origin.piece
            if piece is None or piece.player is not self._current_player:
                return False
            if move.piece_id is not None and piece.id != move.piece_id:
                return False
            self._select(piece)
            result = self._click_movement(cell)

        elif move.action == GameAction.REMOVE:
            if self.phase != GamePhase.CAPTURE:
                return False
            if move.removed_piece_id is not None and (
                cell.piece is None or cell.piece.id != move.removed_piece_id
            ):
                return False
            result = self._click_capture(cell)

        if result is None:
            self._clear_selection()
            return False
        return result.action == move.action

    # --- PHASE HANDLERS ---
    def _click_placement(self, cell: Cell) -> Optional[Move]:
        player = self._current_player
        if not rules.is_valid_placement(cell, player, self.phase):
            return None

        piece = player.next_piece
        # for the typechecker: is_valid_placement made sure there is one.
        assert piece is not None
        self._board.place_piece(piece, cell)
        move = Move(GameAction.PLACE, player.id, cell.id, piece_id=piece.id)

        if not self._start_capture_if_mill(cell):
            self.phase = rules.get_next_phase(GamePhase.PLACEMENT, self._players)
            self._end_turn(check_phase=self.phase)
        return move

    def _click_movement(self, cell: Cell) -> Optional[Move]:
        player = self._current_player

        # clicking one of your own pieces (re)selects it
        if cell.piece is not None and cell.piece.player is player:
            self._select(cell.piece)
            return None

        piece = self.selected_piece
        if piece is None or piece.cell is None or piece.player is not player:
            return None
        origin = piece.cell
        can_fly = rules.can_fly_on_board(player, self._board)
        if not rules.is_valid_move(origin, cell, self._board, can_fly):
            return None

        if can_fly:
            self._board.fly_piece(piece, cell)
        else:
            self._board.move_piece(piece, cell)
        self._clear_selection()
        move = Move(
            GameAction.MOVE,
            player.id,
            cell.id,
            piece_id=piece.id,
            from_cell_id=origin.id,
        )

        if not self._start_capture_if_mill(cell):
            self._end_turn(check_phase=GamePhase.MOVEMENT)
        return move

    def _click_capture(self, cell: Cell) -> Optional[Move]:
        player = self._current_player
        piece = cell.piece
        if not self.mill_to_remove or piece is None:
            return None
        if piece not in self.removable_pieces:
            return None
        if not rules.is_valid_removal(piece, player, self._board):
            return None

        self._board.remove_piece(piece)
        move = Move(GameAction.REMOVE, player.id, cell.id, removed_piece_id=piece.id)
        self.mill_to_remove = False
        self.removable_pieces = ()

        opponent = self.get_opponent(player)
        if rules.has_player_won(player, opponent, GamePhase.CAPTURE, self._board):
            self._declare_winner(player)
            self._advance_turn()
            return move

        # back to whichever phase we came from
        self.phase = (
            GamePhase.PLACEMENT
            if any(p.unplaced_pieces for p in self._players)
            else GamePhase.MOVEMENT
        )
        self._end_turn(check_phase=self.phase)
        return move

    # --- TRANSITION HELPERS ---
    def _start_capture_if_mill(self, cell: Cell) -> bool:
        """
        A mill lets the same player remove an opponent's piece (no change of player).
        NOTE: when the opponent has nothing on the board there is nothing to remove, and the turn just ends.
        """
        if not self._board.check_for_mill(cell):
            return False

        opponent = self.get_opponent(self._current_player)
        removable = rules.get_removable_pieces(opponent, self._board)
        if not removable:
            return False

        logger.debug("Mill on cell %s by %s", cell.id, self._current_player.id)
        self.phase = GamePhase.CAPTURE
        self.mill_to_remove = True
        self.removable_pieces = removable
        self._advance_turn()
        return True

    def _end_turn(self, check_phase: GamePhase) -> None:
        """Check if the player that just moved has won, otherwise hand over to the opponent."""
        player = self._current_player
        opponent = self.get_opponent(player)
        if check_phase == GamePhase.MOVEMENT and rules.has_player_won(
            player, opponent, GamePhase.MOVEMENT, self._board
        ):
            self._declare_winner(player)
        else:
            self._current_player = opponent
        self._advance_turn()

    def _declare_winner(self, player: Player) -> None:
        logger.info("Player %s won the game on turn %s", player.id, self._turn)
        self._winner = player
        player.is_winner = True
        self.phase = GamePhase.GAME_OVER

    def _select(self, piece: GamePiece) -> None:
        self.selected_piece = piece
        self.valid_moves = self.get_valid_moves(piece)

    def _clear_selection(self) -> None:
        self.selected_piece = None
        self.valid_moves = ()

    def _advance_turn(self) -> None:
        self._on_turn_change(self._turn + 1)

    def _on_turn_change(self, new_turn: int) -> None:
        """
        Post-mutation hook: fingerprint the state the completed turn produced.
        The turn only counts once its hash is in the ledger: if hashing fails, the counter is rolled back.
        """
        self._assert_ready()
        self._ready = False
        previous_turn = self._turn
        # the turn number is part of the hashed state
        self._turn = new_turn
        try:
            state_hash = self.state_hash()
            self._add_hash(state_hash, new_turn - 1)
        except Exception:
            self._turn = previous_turn
            raise
        finally:
            self._ready = True
        logger.debug("Turn %s recorded with state hash %s", new_turn - 1, state_hash)
        for listener in self._turn_listeners:
            listener(new_turn, state_hash)

    def _add_hash(self, state_hash: str, turn: int) -> None:
        if turn in self.state_hashes:
            raise GameStateError(f"State hash for turn {turn} already recorded.")
        self.state_hashes[turn] = state_hash

    def _derive_phase(self) -> GamePhase:
        """Older snapshots carry no phase: infer it from the pieces."""
        if self._winner is not None:
            return GamePhase.GAME_OVER
        if any(p.unplaced_pieces for p in self._players):
            return GamePhase.PLACEMENT
        return GamePhase.MOVEMENT

    def _restore_pieces(self, player: Player, pieces_data: list[dict[str, Any]]) -> None:
        """Pieces listed in the snapshot are the active ones, anything missing was removed earlier."""
        listed = {data["id"]: data for data in pieces_data}
        for piece in player.all_pieces:
            data = listed.get(piece.id)
            state = PieceState(data["state"]) if data else PieceState.REMOVED
            if state == PieceState.PLACED:
                self._board.place_piece(piece, self._cell(int(data["cellId"])))
            elif state == PieceState.REMOVED:
                piece.state = PieceState.REMOVED
                player.remove_piece(piece)
