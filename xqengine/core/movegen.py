"""Pseudo-legal and legal move generation, attack detection.

Moves are generated per piece geometry first, then filtered by simulating
each move and testing whether the mover's king is left attacked. Attack
queries never go through move generation, so check detection does not
recurse into legality checks.
"""

from typing import List, Optional

from .board import (
    ADVISOR, BLACK, CANNON, COLS, ELEPHANT, HORSE, KING, PAWN, RED, ROOK, ROWS,
    Board, Move, crossed_river, in_palace, inside, opponent, side_of,
)

ORTHOGONAL = ((1, 0), (-1, 0), (0, 1), (0, -1))
DIAGONAL = ((1, 1), (1, -1), (-1, 1), (-1, -1))
ELEPHANT_STEPS = ((2, 2), (2, -2), (-2, 2), (-2, -2))
# (row delta, col delta, leg row delta, leg col delta); the leg is next to the horse
HORSE_STEPS = (
    (2, 1, 1, 0), (2, -1, 1, 0), (-2, 1, -1, 0), (-2, -1, -1, 0),
    (1, 2, 0, 1), (1, -2, 0, -1), (-1, 2, 0, 1), (-1, -2, 0, -1),
)


def _piece_code(piece_type: str, side: str) -> str:
    return piece_type if side == RED else piece_type.lower()


def pseudo_moves_from(board: Board, r: int, c: int, attack_only: bool = False) -> List[Move]:
    """Moves for the piece on (r, c) that honour its geometry, ignoring checks."""
    grid = board.grid
    piece = grid[r][c]
    if piece is None:
        return []
    side = side_of(piece)
    is_red = side == RED
    moves: List[Move] = []

    def add(rr: int, cc: int) -> None:
        target = grid[rr][cc]
        if target is None:
            if not attack_only:
                moves.append(Move(r, c, rr, cc))
        elif side_of(target) != side:
            moves.append(Move(r, c, rr, cc))

    kind = piece.upper()
    if kind == KING:
        for dr, dc in ORTHOGONAL:
            rr, cc = r + dr, c + dc
            if in_palace(side, rr, cc):
                add(rr, cc)
        # flying general: capture the enemy king down an open file
        step = -1 if is_red else 1
        rr = r + step
        while 0 <= rr < ROWS:
            target = grid[rr][c]
            if target is not None:
                if target == _piece_code(KING, opponent(side)):
                    moves.append(Move(r, c, rr, c))
                break
            rr += step

    elif kind == ADVISOR:
        for dr, dc in DIAGONAL:
            rr, cc = r + dr, c + dc
            if in_palace(side, rr, cc):
                add(rr, cc)

    elif kind == ELEPHANT:
        for dr, dc in ELEPHANT_STEPS:
            rr, cc = r + dr, c + dc
            if not inside(rr, cc) or crossed_river(side, rr):
                continue
            if grid[r + dr // 2][c + dc // 2] is not None:
                continue
            add(rr, cc)

    elif kind == HORSE:
        for dr, dc, lr, lc in HORSE_STEPS:
            rr, cc = r + dr, c + dc
            if not inside(rr, cc) or grid[r + lr][c + lc] is not None:
                continue
            add(rr, cc)

    elif kind == ROOK:
        for dr, dc in ORTHOGONAL:
            rr, cc = r + dr, c + dc
            while inside(rr, cc):
                target = grid[rr][cc]
                if target is None:
                    if not attack_only:
                        moves.append(Move(r, c, rr, cc))
                else:
                    if side_of(target) != side:
                        moves.append(Move(r, c, rr, cc))
                    break
                rr += dr
                cc += dc

    elif kind == CANNON:
        for dr, dc in ORTHOGONAL:
            rr, cc = r + dr, c + dc
            screened = False
            while inside(rr, cc):
                target = grid[rr][cc]
                if not screened:
                    if target is None:
                        if not attack_only:
                            moves.append(Move(r, c, rr, cc))
                    else:
                        screened = True
                elif target is not None:
                    if side_of(target) != side:
                        moves.append(Move(r, c, rr, cc))
                    break
                rr += dr
                cc += dc

    elif kind == PAWN:
        forward = r - 1 if is_red else r + 1
        if 0 <= forward < ROWS:
            add(forward, c)
        if crossed_river(side, r):
            if c + 1 < COLS:
                add(r, c + 1)
            if c - 1 >= 0:
                add(r, c - 1)

    return moves


def pseudo_moves(board: Board, side: str, attack_only: bool = False) -> List[Move]:
    moves: List[Move] = []
    for r, c, _piece in board.pieces(side):
        moves.extend(pseudo_moves_from(board, r, c, attack_only))
    return moves


def square_attacked(board: Board, r: int, c: int, attacker: str) -> bool:
    """True if any piece of `attacker` geometrically attacks (r, c)."""
    grid = board.grid
    is_red = attacker == RED
    king = _piece_code(KING, attacker)
    advisor = _piece_code(ADVISOR, attacker)
    elephant = _piece_code(ELEPHANT, attacker)
    horse = _piece_code(HORSE, attacker)
    rook = _piece_code(ROOK, attacker)
    cannon = _piece_code(CANNON, attacker)
    pawn = _piece_code(PAWN, attacker)

    # pawns: red pawns attack upward, sideways once across the river
    behind = r + 1 if is_red else r - 1
    if 0 <= behind < ROWS and grid[behind][c] == pawn:
        return True
    if crossed_river(attacker, r):
        if c > 0 and grid[r][c - 1] == pawn:
            return True
        if c < COLS - 1 and grid[r][c + 1] == pawn:
            return True

    # king steps and advisors only reach squares inside the attacker's palace
    if in_palace(attacker, r, c):
        for dr, dc in ORTHOGONAL:
            rr, cc = r + dr, c + dc
            if inside(rr, cc) and grid[rr][cc] == king:
                return True
        for dr, dc in DIAGONAL:
            rr, cc = r + dr, c + dc
            if inside(rr, cc) and grid[rr][cc] == advisor:
                return True

    # flying general: only the enemy king can be taken down an open file
    if grid[r][c] == _piece_code(KING, opponent(attacker)):
        step = 1 if is_red else -1
        rr = r + step
        while 0 <= rr < ROWS:
            target = grid[rr][c]
            if target is not None:
                if target == king:
                    return True
                break
            rr += step

    if not crossed_river(attacker, r):
        for dr, dc in ELEPHANT_STEPS:
            rr, cc = r + dr, c + dc
            if inside(rr, cc) and grid[rr][cc] == elephant and grid[r + dr // 2][c + dc // 2] is None:
                return True

    for dr, dc, lr, lc in HORSE_STEPS:
        hr, hc = r - dr, c - dc
        if inside(hr, hc) and grid[hr][hc] == horse and grid[hr + lr][hc + lc] is None:
            return True

    for dr, dc in ORTHOGONAL:
        rr, cc = r + dr, c + dc
        screened = False
        while inside(rr, cc):
            target = grid[rr][cc]
            if target is not None:
                if not screened:
                    if target == rook:
                        return True
                    screened = True
                else:
                    if target == cannon:
                        return True
                    break
            rr += dr
            cc += dc

    return False


def in_check(board: Board, side: str) -> bool:
    """A side without a king is treated as in check."""
    king_sq = board.find_king(side)
    if king_sq is None:
        return True
    return square_attacked(board, king_sq[0], king_sq[1], opponent(side))


def is_legal(board: Board, move: Move, side: str) -> bool:
    grid = board.grid
    piece = grid[move.from_row][move.from_col]
    captured = grid[move.to_row][move.to_col]
    grid[move.from_row][move.from_col] = None
    grid[move.to_row][move.to_col] = piece
    try:
        return not in_check(board, side)
    finally:
        grid[move.from_row][move.from_col] = piece
        grid[move.to_row][move.to_col] = captured


def legal_moves(board: Board, side: Optional[str] = None) -> List[Move]:
    side = side or board.side
    return [m for m in pseudo_moves(board, side) if is_legal(board, m, side)]


def gives_check(board: Board, move: Move, side: str) -> bool:
    """Would `move` by `side` leave the opponent's king attacked?"""
    grid = board.grid
    piece = grid[move.from_row][move.from_col]
    captured = grid[move.to_row][move.to_col]
    grid[move.from_row][move.from_col] = None
    grid[move.to_row][move.to_col] = piece
    try:
        return in_check(board, opponent(side))
    finally:
        grid[move.from_row][move.from_col] = piece
        grid[move.to_row][move.to_col] = captured


def tactical_moves(board: Board, side: str) -> List[Move]:
    """Legal captures plus legal quiet moves that give check."""
    grid = board.grid
    moves: List[Move] = []
    for move in pseudo_moves(board, side):
        if grid[move.to_row][move.to_col] is not None:
            if is_legal(board, move, side):
                moves.append(move)
        elif gives_check(board, move, side) and is_legal(board, move, side):
            moves.append(move)
    return moves


def count_attackers(board: Board, r: int, c: int, attacker: str) -> int:
    return sum(
        1 for m in pseudo_moves(board, attacker, attack_only=True)
        if m.to_row == r and m.to_col == c
    )


def has_legal_move(board: Board, side: str) -> bool:
    for move in pseudo_moves(board, side):
        if is_legal(board, move, side):
            return True
    return False
