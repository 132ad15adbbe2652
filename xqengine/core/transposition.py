"""Zobrist hashing, repetition tracking and the transposition table.

- Zobrist: one random 64-bit key per (piece code, row, col) plus a
  side-to-move key. `hash()` computes a key from scratch; `move_delta()`
  gives the XOR that one move applies, so the search can keep its key up to
  date incrementally (applying the same delta again undoes the move).

- RepetitionTracker: occurrence counts of hashes along the live search
  path. Counts are pushed on make and popped on unmake.

- TranspositionTable: a dict keyed by zobrist key, one entry per key,
  last write wins.

Usage (example):

    from xqengine.core.transposition import ZOBRIST, TranspositionTable, TT_EXACT

    tt = TranspositionTable()
    key = ZOBRIST.hash(board)
    tt.store(key, depth=3, value=120, flag=TT_EXACT, best_move=move)
    entry = tt.get(key)

"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional

from xqengine.config import CONFIG
from .board import BLACK, COLS, PIECE_CODES, ROWS, Board, Move

TT_EXACT = 0
TT_LOWER = 1  # fail-high: value is a lower bound
TT_UPPER = 2  # fail-low: value is an upper bound


class Zobrist:
    """Zobrist keys for every piece code on every square."""

    def __init__(self, seed: Optional[int] = None):
        rng = random.Random(seed)
        self.pieces: Dict[str, List[List[int]]] = {
            piece: [[rng.getrandbits(64) for _ in range(COLS)] for _ in range(ROWS)]
            for piece in sorted(PIECE_CODES)
        }
        self.side = rng.getrandbits(64)

    def hash(self, board: Board) -> int:
        h = 0
        for r in range(ROWS):
            row = board.grid[r]
            for c in range(COLS):
                piece = row[c]
                if piece is not None:
                    h ^= self.pieces[piece][r][c]
        # side: xor when black to move (convention)
        if board.side == BLACK:
            h ^= self.side
        return h

    def move_delta(self, piece: str, move: Move, captured: Optional[str]) -> int:
        keys = self.pieces[piece]
        delta = keys[move.from_row][move.from_col] ^ keys[move.to_row][move.to_col] ^ self.side
        if captured is not None:
            delta ^= self.pieces[captured][move.to_row][move.to_col]
        return delta


# Built once per process and never mutated, so hashes are comparable across searches.
ZOBRIST = Zobrist(CONFIG.search.zobrist_seed)


class RepetitionTracker:
    """Occurrence counts of position hashes along the current path."""

    def __init__(self, threshold: int = 3):
        self.threshold = threshold
        self.counts: Dict[int, int] = {}
        self.stack: List[int] = []

    def push(self, key: int) -> None:
        self.stack.append(key)
        self.counts[key] = self.counts.get(key, 0) + 1

    def pop(self) -> None:
        key = self.stack.pop()
        remaining = self.counts[key] - 1
        if remaining <= 0:
            del self.counts[key]
        else:
            self.counts[key] = remaining

    def count(self, key: int) -> int:
        return self.counts.get(key, 0)

    def is_draw(self, key: int) -> bool:
        return self.counts.get(key, 0) >= self.threshold

    def __len__(self) -> int:
        return len(self.stack)


@dataclass
class TTEntry:
    depth: int
    value: int
    flag: int
    best_move: Optional[Move]

    def __iter__(self):
        return iter((self.depth, self.value, self.flag, self.best_move))


class TranspositionTable:
    """Search cache keyed by zobrist key.

    Keys are not verified against the position; a 64-bit collision would
    return another position's entry.
    """

    def __init__(self):
        self._table: Dict[int, TTEntry] = {}

    def get(self, key: int) -> Optional[TTEntry]:
        return self._table.get(key)

    def store(self, key: int, depth: int, value: int, flag: int, best_move: Optional[Move]):
        self._table[key] = TTEntry(depth, value, flag, best_move)

    def clear(self):
        self._table.clear()

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: int) -> bool:
        return key in self._table
