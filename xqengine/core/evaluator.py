"""Static Xiangqi evaluator, positive scores favour red.

The terms are hand-weighted rather than tuned: material, a positional table,
pawn structure, rook/cannon coordination, king safety, a family of cannon
heuristics, open files, endgame king activity, king pressure and mobility.
Every term is a pure function of the grid.
"""

from typing import Dict, List, Optional, Tuple

from xqengine.config import CONFIG
from .board import (
    ADVISOR, BLACK, CANNON, COLS, ELEPHANT, HORSE, KING, PAWN, RED, ROOK, ROWS,
    Board, inside, side_of,
)
from .movegen import ORTHOGONAL, count_attackers, legal_moves

MATE_SCORE = 99999

Square = Tuple[int, int]
Positions = Dict[str, List[Square]]


def _empty_positions() -> Positions:
    return {ADVISOR: [], ELEPHANT: [], HORSE: [], ROOK: [], CANNON: [], PAWN: []}


def count_between(board: Board, r1: int, c1: int, r2: int, c2: int) -> Optional[int]:
    """Pieces strictly between two squares on a shared line, None if not aligned."""
    grid = board.grid
    if r1 == r2:
        return sum(1 for c in range(min(c1, c2) + 1, max(c1, c2)) if grid[r1][c])
    if c1 == c2:
        return sum(1 for r in range(min(r1, r2) + 1, max(r1, r2)) if grid[r][c1])
    return None


def single_between_on_file(board: Board, r1: int, c: int, r2: int) -> Optional[Square]:
    if not 0 <= c < COLS:
        return None
    seen = None
    for r in range(min(r1, r2) + 1, max(r1, r2)):
        if board.grid[r][c]:
            if seen:
                return None
            seen = (r, c)
    return seen


def single_between_on_rank(board: Board, c1: int, r: int, c2: int) -> Optional[Square]:
    if not 0 <= r < ROWS:
        return None
    seen = None
    for c in range(min(c1, c2) + 1, max(c1, c2)):
        if board.grid[r][c]:
            if seen:
                return None
            seen = (r, c)
    return seen


class Evaluator:
    def __init__(self):
        self.cfg = CONFIG.eval
        self.values = self.cfg.piece_values

    def value(self, piece: str) -> int:
        return self.values[piece.upper()]

    def evaluate(self, board: Board) -> int:
        """Return static eval, positive favours red."""
        score = 0.0
        red_king: Optional[Square] = None
        black_king: Optional[Square] = None
        total_material = 0
        positions = {RED: _empty_positions(), BLACK: _empty_positions()}

        for r in range(ROWS):
            row = board.grid[r]
            for c in range(COLS):
                piece = row[c]
                if not piece:
                    continue
                is_red = piece.isupper()
                kind = piece.upper()
                val = self.values[kind]
                bonus = self.positional_bonus(piece, r, c)
                score += (val + bonus) if is_red else -(val + bonus)
                if kind == KING:
                    if is_red:
                        red_king = (r, c)
                    else:
                        black_king = (r, c)
                    continue
                total_material += val
                positions[RED if is_red else BLACK][kind].append((r, c))

        if red_king is None:
            return -MATE_SCORE
        if black_king is None:
            return MATE_SCORE

        red, black = positions[RED], positions[BLACK]

        score += self.passed_pawn_bonus(board, RED, red[PAWN])
        score -= self.passed_pawn_bonus(board, BLACK, black[PAWN])

        score += self.coordination_bonus(board, red)
        score -= self.coordination_bonus(board, black)
        score += self.pawn_structure_bonus(red[PAWN])
        score -= self.pawn_structure_bonus(black[PAWN])

        score += self.king_safety(board, RED, red_king, red, black)
        score -= self.king_safety(board, BLACK, black_king, black, red)

        score += self.cannon_strategic_bonus(board, RED, red_king, black_king, red[CANNON])
        score -= self.cannon_strategic_bonus(board, BLACK, black_king, red_king, black[CANNON])
        score += self.cannon_activity_bonus(board, red[CANNON])
        score -= self.cannon_activity_bonus(board, black[CANNON])
        score += self.cannon_screen_threat_bonus(board, RED, red[CANNON])
        score -= self.cannon_screen_threat_bonus(board, BLACK, black[CANNON])
        score += self.cannon_rook_synergy(board, RED, red[CANNON], red[ROOK], black_king)
        score -= self.cannon_rook_synergy(board, BLACK, black[CANNON], black[ROOK], red_king)
        score += self.cannon_king_proximity(RED, red[CANNON], black_king)
        score -= self.cannon_king_proximity(BLACK, black[CANNON], red_king)

        red_pawn_files = [0] * COLS
        black_pawn_files = [0] * COLS
        for _, c in red[PAWN]:
            red_pawn_files[c] += 1
        for _, c in black[PAWN]:
            black_pawn_files[c] += 1
        score += self.open_file_bonus(red, red_pawn_files, black_pawn_files, black_king)
        score -= self.open_file_bonus(black, black_pawn_files, red_pawn_files, red_king)

        score += self.king_activity_bonus(RED, red_king, total_material)
        score -= self.king_activity_bonus(BLACK, black_king, total_material)

        red_pressure = count_attackers(board, black_king[0], black_king[1], RED)
        black_pressure = count_attackers(board, red_king[0], red_king[1], BLACK)
        score += (red_pressure - black_pressure) * self.cfg.king_pressure_weight

        score += self.mobility(board) * self.cfg.mobility_weight
        return int(round(score))

    def material(self, board: Board) -> int:
        """Red material minus black material, kings excluded."""
        total = 0
        for _, _, piece in board.pieces():
            if piece.upper() == KING:
                continue
            total += self.value(piece) if piece.isupper() else -self.value(piece)
        return total

    def mobility(self, board: Board) -> int:
        return len(legal_moves(board, RED)) - len(legal_moves(board, BLACK))

    # ---- per-piece terms ----------------------------------------------

    @staticmethod
    def positional_bonus(piece: str, r: int, c: int) -> float:
        is_red = piece.isupper()
        rr = r if is_red else 9 - r
        center_dist = abs(c - 4) + abs(rr - 4.5)
        center_bonus = max(0.0, 10 - center_dist * 2)
        kind = piece.upper()
        if kind == PAWN:
            return (9 - rr) * 2 + (6 if rr <= 4 else 0)
        if kind in (ROOK, CANNON, HORSE):
            return center_bonus
        if kind == KING:
            return 6 if rr <= 2 else 0
        return 0

    def passed_pawn_bonus(self, board: Board, side: str, pawns: List[Square]) -> int:
        w = self.cfg.passed_pawn_weights
        bonus = 0
        for r, c in pawns:
            if not self.is_passed_pawn(board, side, r, c):
                continue
            advance = max(0, 6 - r) if side == RED else max(0, r - 3)
            bonus += w["base"] + advance * w["per_rank"]
        return bonus

    @staticmethod
    def is_passed_pawn(board: Board, side: str, r: int, c: int) -> bool:
        if side == RED:
            return all(board.grid[rr][c] != "p" for rr in range(r - 1, -1, -1))
        return all(board.grid[rr][c] != "P" for rr in range(r + 1, ROWS))

    def pawn_structure_bonus(self, pawns: List[Square]) -> int:
        w = self.cfg.pawn_structure_weights
        file_counts = [0] * COLS
        pawn_set = set(pawns)
        bonus = 0
        for r, c in pawns:
            file_counts[c] += 1
            if (r, c - 1) in pawn_set or (r, c + 1) in pawn_set:
                bonus += w["connected_bonus"]
        for count in file_counts:
            if count > 1:
                bonus -= (count - 1) * w["doubled_penalty"]
        return bonus

    @staticmethod
    def coordination_bonus(board: Board, own: Positions) -> int:
        bonus = 0
        rooks, cannons = own[ROOK], own[CANNON]
        for i in range(len(rooks)):
            for j in range(i + 1, len(rooks)):
                if count_between(board, *rooks[i], *rooks[j]) == 0:
                    bonus += 26
        for i in range(len(cannons)):
            for j in range(i + 1, len(cannons)):
                if count_between(board, *cannons[i], *cannons[j]) == 0:
                    bonus += 14
        for rook in rooks:
            for cannon in cannons:
                if count_between(board, *rook, *cannon) == 0:
                    bonus += 12
        return bonus

    def king_safety(self, board: Board, side: str, king: Square, own: Positions, enemy: Positions) -> int:
        w = self.cfg.king_safety_weights
        advisors = len(own[ADVISOR])
        elephants = len(own[ELEPHANT])
        score = advisors * w["advisor"] + elephants * w["elephant"]
        score -= (2 - advisors) * w["missing_advisor"]
        if elephants == 0:
            score -= w["no_elephant"]

        for er, ec in enemy[ROOK]:
            if count_between(board, king[0], king[1], er, ec) == 0:
                score -= w["open_rook"]
        for er, ec in enemy[CANNON]:
            if count_between(board, king[0], king[1], er, ec) == 1:
                score -= w["screened_cannon"]

        attacker = BLACK if side == RED else RED
        score -= count_attackers(board, king[0], king[1], attacker) * w["attacker"]
        return score

    # ---- cannon terms -------------------------------------------------

    @staticmethod
    def cannon_open_lines(board: Board, cr: int, cc: int) -> int:
        bonus = 0
        for dr, dc in ORTHOGONAL:
            rr, c2 = cr + dr, cc + dc
            empty = 0
            while inside(rr, c2) and not board.grid[rr][c2]:
                empty += 1
                rr += dr
                c2 += dc
            bonus += min(empty, 3) * 2
        return bonus

    def cannon_activity_bonus(self, board: Board, cannons: List[Square]) -> float:
        bonus = 0.0
        for cr, cc in cannons:
            bonus += self.cannon_open_lines(board, cr, cc) * 4
            center_dist = abs(cc - 4) + abs(cr - 4.5)
            bonus += max(0.0, 8 - center_dist) * 2
        return bonus

    def cannon_screen_threat(self, board: Board, cr: int, cc: int, side: str) -> int:
        """Value of enemy pieces this cannon could capture over a screen."""
        grid = board.grid
        score = 0
        for dr, dc in ORTHOGONAL:
            rr, c2 = cr + dr, cc + dc
            while inside(rr, c2) and not grid[rr][c2]:
                rr += dr
                c2 += dc
            if not inside(rr, c2):
                continue
            rr += dr
            c2 += dc
            while inside(rr, c2) and not grid[rr][c2]:
                rr += dr
                c2 += dc
            if not inside(rr, c2):
                continue
            target = grid[rr][c2]
            if side_of(target) != side:
                score += round(min(self.value(target), 600) * 0.2)
                if target.upper() == KING:
                    score += 80
        return score

    def cannon_screen_threat_bonus(self, board: Board, side: str, cannons: List[Square]) -> int:
        return sum(self.cannon_screen_threat(board, cr, cc, side) for cr, cc in cannons)

    @staticmethod
    def cannon_rook_synergy(board: Board, side: str, cannons: List[Square], rooks: List[Square],
                            enemy_king: Optional[Square]) -> int:
        if not enemy_king:
            return 0
        rook_code = ROOK if side == RED else ROOK.lower()
        kr, kc = enemy_king
        bonus = 0
        for cr, cc in cannons:
            for rr, rc in rooks:
                if cr == rr or cc == rc:
                    between = count_between(board, cr, cc, rr, rc)
                    if between == 0:
                        bonus += 8
                    elif between == 1:
                        bonus += 16
            if cr == kr and count_between(board, cr, cc, kr, kc) == 1:
                screen = single_between_on_rank(board, cc, cr, kc)
                if screen and board.grid[screen[0]][screen[1]] == rook_code:
                    bonus += 28
            if cc == kc and count_between(board, cr, cc, kr, kc) == 1:
                screen = single_between_on_file(board, cr, cc, kr)
                if screen and board.grid[screen[0]][screen[1]] == rook_code:
                    bonus += 32
        return bonus

    @staticmethod
    def cannon_king_proximity(side: str, cannons: List[Square], enemy_king: Optional[Square]) -> int:
        if not enemy_king:
            return 0
        kr, kc = enemy_king
        lo, hi = (0, 2) if side == RED else (7, 9)
        bonus = 0
        for cr, cc in cannons:
            if abs(cr - kr) + abs(cc - kc) <= 3:
                bonus += 10
            if cc == kc and abs(cr - kr) <= 4:
                bonus += 12
            if cr == kr and abs(cc - kc) <= 4:
                bonus += 8
            if lo - 1 <= cr <= hi + 1:
                bonus += 8
        return bonus

    def cannon_strategic_bonus(self, board: Board, side: str, own_king: Optional[Square],
                               enemy_king: Optional[Square], cannons: List[Square]) -> int:
        """Open lines plus screened checks against the enemy king.

        A single screen between cannon and king on a file scores 45 (35 on a
        rank), more when the screen is an enemy piece (it cannot simply step
        away to unmask a check) and more again when it sits next to the king.
        """
        if not own_king or not enemy_king:
            return 0
        cannon_code = CANNON if side == RED else CANNON.lower()
        kr, kc = enemy_king
        bonus = 0
        for cr, cc in cannons:
            bonus += self.cannon_open_lines(board, cr, cc)
            if cc == kc and count_between(board, cr, cc, kr, kc) == 1:
                bonus += 45
                screen = single_between_on_file(board, cr, cc, kr)
                if screen:
                    screen_piece = board.grid[screen[0]][screen[1]]
                    bonus += 8 if side_of(screen_piece) == side else 15
                    if abs(screen[0] - kr) == 1:
                        bonus += 20
            if cr == kr and count_between(board, cr, cc, kr, kc) == 1:
                bonus += 35
                screen = single_between_on_rank(board, cc, cr, kc)
                if screen:
                    screen_piece = board.grid[screen[0]][screen[1]]
                    bonus += 6 if side_of(screen_piece) == side else 12
                    if abs(screen[1] - kc) == 1:
                        bonus += 16

        if own_king[1] == kc:
            between = single_between_on_file(board, own_king[0], own_king[1], kr)
            if between and board.grid[between[0]][between[1]] == cannon_code:
                bonus += 60
        return bonus

    # ---- files and kings ----------------------------------------------

    @staticmethod
    def open_file_bonus(own: Positions, own_pawn_files: List[int], enemy_pawn_files: List[int],
                        enemy_king: Optional[Square]) -> int:
        bonus = 0
        for _, c in own[ROOK]:
            if own_pawn_files[c] == 0 and enemy_pawn_files[c] == 0:
                bonus += 18
            elif own_pawn_files[c] == 0:
                bonus += 10
            if enemy_king and c == enemy_king[1]:
                bonus += 6
        for _, c in own[CANNON]:
            if own_pawn_files[c] == 0 and enemy_pawn_files[c] == 0:
                bonus += 10
            elif own_pawn_files[c] == 0:
                bonus += 6
        return bonus

    def king_activity_bonus(self, side: str, king: Optional[Square], total_material: int) -> float:
        threshold = self.cfg.endgame_material
        if not king or total_material >= threshold:
            return 0.0
        phase = (threshold - total_material) / threshold
        center = (8, 4) if side == RED else (1, 4)
        dist = abs(king[0] - center[0]) + abs(king[1] - center[1])
        return max(0, 6 - dist) * 8 * phase
