from typing import Optional, Sequence, Tuple, Union

from xqengine.config import CONFIG
from xqengine.core.board import Board, RED, opponent
from xqengine.core.evaluator import Evaluator
from xqengine.core.movegen import has_legal_move, legal_moves
from xqengine.core.search import SearchEngine, SearchResult


class Engine:
    """A game in progress plus the search engine that advises on it."""

    def __init__(self, depth: Optional[int] = None):
        self.board = Board.initial()
        self.search = SearchEngine(Evaluator(), depth=depth if depth is not None else CONFIG.search.depth)

    def analyse(self, depth: Optional[int] = None, progress=None) -> SearchResult:
        return self.search.search(self.board, depth, progress=progress)

    def get_best_move(self) -> Tuple[Optional[str], int]:
        result = self.analyse()
        move = result.best_move.uci() if result.best_move else None
        return move, result.score

    def make_move(self, move_uci: str) -> bool:
        return self.board.push_uci(move_uci)

    def undo_move(self) -> bool:
        return self.board.pop() is not None

    def legal_moves(self):
        return [m.uci() for m in legal_moves(self.board, self.board.side)]

    def is_game_over(self) -> bool:
        """The side to move has no legal move (mate and stalemate both lose)."""
        return not has_legal_move(self.board, self.board.side)

    def set_position(self, code: Union[str, Sequence[str]], side: str = RED):
        """Import a board code; the current game is untouched if it is malformed."""
        self.board = Board.from_code(code, side)

    def export_position(self) -> str:
        return self.board.to_code()

    def reset(self):
        self.board = Board.initial()

    def clear(self):
        self.board = Board(side=self.board.side)

    def toggle_side(self) -> str:
        self.board.side = opponent(self.board.side)
        self.board.move_history.clear()
        return self.board.side

    def print_board(self):
        print(self.board)
