"""Move ordering: TT move, MVV-LVA captures, killers, history and root nudges."""

from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from xqengine.config import CONFIG
from .board import RED, Board, Move
from .movegen import gives_check, pseudo_moves

TT_MOVE_BONUS = 1_000_000_000
CAPTURE_BONUS = 1_000_000
KILLER_BONUS = (500_000, 300_000)
CHECK_BONUS = 220_000
ADVANCE_BONUS = 15
THREAT_SWING_WEIGHT = 40
THREAT_LOSS_PENALTY = 3_000
ROOT_PLIES = 1  # check and threat-swing nudges apply at ply <= ROOT_PLIES

PIECE_VALUES = CONFIG.eval.piece_values


def piece_value(piece: str) -> int:
    return PIECE_VALUES[piece.upper()]


def mvv_lva(board: Board, move: Move) -> int:
    attacker = board.piece_at(*move.from_sq)
    victim = board.piece_at(*move.to_sq)
    if victim is None:
        return 0
    return piece_value(victim) * 10 - piece_value(attacker)


def threat_score(board: Board, side: str) -> float:
    """Capturable enemy material: best target value per attacked square, capped."""
    best_targets: Dict[Tuple[int, int], int] = {}
    for move in pseudo_moves(board, side, attack_only=True):
        target = board.grid[move.to_row][move.to_col]
        val = piece_value(target)
        if val > best_targets.get(move.to_sq, 0):
            best_targets[move.to_sq] = val
    return sum(min(val, 600) / 10 for val in best_targets.values())


class KillerTable:
    """Two quiet cutoff moves per ply."""

    def __init__(self, max_ply: int = 64):
        self.slots_by_ply: List[List[Optional[Move]]] = [[None, None] for _ in range(max_ply + 1)]

    def add(self, ply: int, move: Move) -> None:
        if ply >= len(self.slots_by_ply):
            return
        slots = self.slots_by_ply[ply]
        if slots[0] != move:
            slots[1] = slots[0]
            slots[0] = move

    def slots(self, ply: int) -> List[Optional[Move]]:
        if ply >= len(self.slots_by_ply):
            return [None, None]
        return self.slots_by_ply[ply]


class HistoryTable:
    """Accumulated depth^2 scores for quiet moves that caused cutoffs."""

    def __init__(self):
        self.scores: Dict[Tuple[str, int], int] = defaultdict(int)

    @staticmethod
    def _key(side: str, move: Move) -> Tuple[str, int]:
        return side, move.key()

    def add(self, side: str, move: Move, depth: int) -> None:
        self.scores[self._key(side, move)] += depth * depth

    def get(self, side: str, move: Move) -> int:
        return self.scores.get(self._key(side, move), 0)


class MoveOrderer:
    def __init__(self, killers: KillerTable, history: HistoryTable):
        self.killers = killers
        self.history = history

    def score(self, board: Board, move: Move, side: str, ply: int,
              tt_move: Optional[Move], threat_before: Optional[float] = None) -> float:
        grid = board.grid
        attacker = grid[move.from_row][move.from_col]
        target = grid[move.to_row][move.to_col]
        score = 0.0
        if tt_move is not None and move == tt_move:
            score += TT_MOVE_BONUS
        if target is not None:
            score += CAPTURE_BONUS + piece_value(target) * 10 - piece_value(attacker)
        else:
            killers = self.killers.slots(ply)
            if killers[0] == move:
                score += KILLER_BONUS[0]
            elif killers[1] == move:
                score += KILLER_BONUS[1]
        score += self.history.get(side, move)

        if side == RED and move.to_row <= 2:
            score += ADVANCE_BONUS
        if side != RED and move.to_row >= 7:
            score += ADVANCE_BONUS

        if ply <= ROOT_PLIES:
            if gives_check(board, move, side):
                score += CHECK_BONUS
            if target is None:
                before = threat_before if threat_before is not None else threat_score(board, side)
                captured = board.make(move)
                after = threat_score(board, side)
                board.unmake(move, captured)
                delta = after - before
                score += delta * THREAT_SWING_WEIGHT
                if delta <= 0:
                    score -= THREAT_LOSS_PENALTY
        return score

    def order(self, board: Board, moves: List[Move], side: str, ply: int,
              tt_move: Optional[Move] = None) -> List[Move]:
        threat_before = threat_score(board, side) if ply <= ROOT_PLIES else None
        scored = [(self.score(board, m, side, ply, tt_move, threat_before), i, m) for i, m in enumerate(moves)]
        scored.sort(key=lambda x: (-x[0], x[1]))
        return [m for _, _, m in scored]

    @staticmethod
    def order_captures(board: Board, moves: List[Move]) -> List[Move]:
        return sorted(moves, key=lambda m: mvv_lva(board, m), reverse=True)
