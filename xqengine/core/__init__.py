"""Core engine components: board, move generation, evaluator, search, and transposition table."""

from .board import Board, Move, BoardFormatError, IllegalMoveError, RED, BLACK
from .evaluator import Evaluator
from .search import SearchEngine, SearchResult
from .transposition import TranspositionTable
