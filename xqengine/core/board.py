"""Xiangqi board model: a 10x9 grid of single-character piece codes.

Uppercase codes are red, lowercase codes are black. Row 0 is black's back
rank and row 9 is red's, so red pawns advance toward row 0.
"""

from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

ROWS = 10
COLS = 9

RED = "r"
BLACK = "b"

KING, ADVISOR, ELEPHANT, HORSE, ROOK, CANNON, PAWN = "K", "A", "E", "H", "R", "C", "P"
PIECE_TYPES = (KING, ADVISOR, ELEPHANT, HORSE, ROOK, CANNON, PAWN)
PIECE_CODES = frozenset(PIECE_TYPES + tuple(p.lower() for p in PIECE_TYPES))

PALACE_COLS = (3, 5)
PALACE_ROWS = {RED: (7, 9), BLACK: (0, 2)}

EMPTY = "."
ROW_DELIMITER = "/"

INITIAL_ROWS = (
    "rheakaehr",
    ".........",
    ".c.....c.",
    "p.p.p.p.p",
    ".........",
    ".........",
    "P.P.P.P.P",
    ".C.....C.",
    ".........",
    "RHEAKAEHR",
)

Grid = List[List[Optional[str]]]


class BoardFormatError(ValueError):
    """Raised for malformed board codes; carries the offending row/column."""

    def __init__(self, message: str, row: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.row = row
        self.col = col


class IllegalMoveError(ValueError):
    pass


def opponent(side: str) -> str:
    return BLACK if side == RED else RED


def side_of(piece: str) -> str:
    return RED if piece.isupper() else BLACK


def in_palace(side: str, row: int, col: int) -> bool:
    lo, hi = PALACE_ROWS[side]
    return lo <= row <= hi and PALACE_COLS[0] <= col <= PALACE_COLS[1]


def crossed_river(side: str, row: int) -> bool:
    return row <= 4 if side == RED else row >= 5


def inside(row: int, col: int) -> bool:
    return 0 <= row < ROWS and 0 <= col < COLS


class Move(NamedTuple):
    from_row: int
    from_col: int
    to_row: int
    to_col: int

    @property
    def from_sq(self) -> Tuple[int, int]:
        return self.from_row, self.from_col

    @property
    def to_sq(self) -> Tuple[int, int]:
        return self.to_row, self.to_col

    def key(self) -> int:
        """Dense integer key (from index * 90 + to index)."""
        return (self.from_row * COLS + self.from_col) * ROWS * COLS + self.to_row * COLS + self.to_col

    def uci(self) -> str:
        """Coordinate text such as 'h2e2' (file a..i, rank 0..9 from red's side)."""
        return (
            f"{chr(97 + self.from_col)}{9 - self.from_row}"
            f"{chr(97 + self.to_col)}{9 - self.to_row}"
        )

    @classmethod
    def from_uci(cls, text: str) -> "Move":
        text = text.strip().lower()
        if len(text) != 4:
            raise ValueError(f"Invalid move text: {text!r}")
        fc, fr, tc, tr = text[0], text[1], text[2], text[3]
        if not ("a" <= fc <= "i" and "a" <= tc <= "i" and fr.isdigit() and tr.isdigit()):
            raise ValueError(f"Invalid move text: {text!r}")
        return cls(9 - int(fr), ord(fc) - 97, 9 - int(tr), ord(tc) - 97)

    def __str__(self) -> str:
        return self.uci()


class Board:
    """Mutable Xiangqi position: piece grid, side to move and played moves."""

    def __init__(self, grid: Optional[Grid] = None, side: str = RED):
        self.grid: Grid = grid if grid is not None else [[None] * COLS for _ in range(ROWS)]
        self.side = side
        self.move_history: List[Tuple[Move, Optional[str]]] = []

    # ---- construction -------------------------------------------------

    @classmethod
    def initial(cls) -> "Board":
        return cls.from_code(INITIAL_ROWS, RED)

    @classmethod
    def from_code(cls, code: Union[str, Sequence[str]], side: str = RED) -> "Board":
        """Parse a board code ('/'-separated rows or a list of 10 row strings)."""
        if side not in (RED, BLACK):
            raise BoardFormatError(f"Unknown side to move: {side!r}")
        rows = code.strip().split(ROW_DELIMITER) if isinstance(code, str) else list(code)
        if len(rows) != ROWS:
            raise BoardFormatError(f"Board needs {ROWS} rows, got {len(rows)}")

        grid: Grid = []
        kings = {RED: 0, BLACK: 0}
        for r, row in enumerate(rows):
            if len(row) != COLS:
                raise BoardFormatError(
                    f"Row {r + 1} needs {COLS} cells, got {len(row)}", row=r
                )
            cells: List[Optional[str]] = []
            for c, ch in enumerate(row):
                if ch == EMPTY:
                    cells.append(None)
                    continue
                if ch not in PIECE_CODES:
                    raise BoardFormatError(
                        f"Unknown piece code {ch!r} at row {r + 1}, column {c + 1}", row=r, col=c
                    )
                if ch.upper() == KING:
                    kings[side_of(ch)] += 1
                    if kings[side_of(ch)] > 1:
                        raise BoardFormatError(
                            f"Second king {ch!r} at row {r + 1}, column {c + 1}", row=r, col=c
                        )
                cells.append(ch)
            grid.append(cells)
        return cls(grid, side)

    def to_code(self) -> str:
        return ROW_DELIMITER.join(
            "".join(cell or EMPTY for cell in row) for row in self.grid
        )

    def copy(self) -> "Board":
        b = Board([row[:] for row in self.grid], self.side)
        b.move_history = list(self.move_history)
        return b

    # ---- queries --------------------------------------------------------

    def piece_at(self, row: int, col: int) -> Optional[str]:
        return self.grid[row][col]

    def set_piece(self, row: int, col: int, piece: Optional[str]) -> None:
        if piece is not None and piece not in PIECE_CODES:
            raise BoardFormatError(f"Unknown piece code {piece!r}", row=row, col=col)
        self.grid[row][col] = piece

    def find_king(self, side: str) -> Optional[Tuple[int, int]]:
        target = KING if side == RED else KING.lower()
        for r in range(ROWS):
            row = self.grid[r]
            for c in range(COLS):
                if row[c] == target:
                    return r, c
        return None

    def pieces(self, side: Optional[str] = None) -> Iterator[Tuple[int, int, str]]:
        for r in range(ROWS):
            for c, piece in enumerate(self.grid[r]):
                if piece and (side is None or side_of(piece) == side):
                    yield r, c, piece

    def count_pieces(self) -> int:
        return sum(1 for row in self.grid for cell in row if cell)

    # ---- mutation -------------------------------------------------------

    def make(self, move: Move) -> Optional[str]:
        """Apply a move in place, toggle the side and return the captured piece."""
        grid = self.grid
        piece = grid[move.from_row][move.from_col]
        captured = grid[move.to_row][move.to_col]
        grid[move.from_row][move.from_col] = None
        grid[move.to_row][move.to_col] = piece
        self.side = opponent(self.side)
        return captured

    def unmake(self, move: Move, captured: Optional[str]) -> None:
        grid = self.grid
        grid[move.from_row][move.from_col] = grid[move.to_row][move.to_col]
        grid[move.to_row][move.to_col] = captured
        self.side = opponent(self.side)

    def push(self, move: Move) -> None:
        """Play a legal move and record it in the move history."""
        from .movegen import legal_moves

        if move not in legal_moves(self, self.side):
            raise IllegalMoveError(f"Illegal move: {move.uci()}")
        captured = self.make(move)
        self.move_history.append((move, captured))

    def push_uci(self, move_str: str) -> bool:
        """Push a coordinate move (e.g. 'h2e2'). Returns True if legal."""
        try:
            self.push(Move.from_uci(move_str))
        except ValueError:
            return False
        return True

    def pop(self) -> Optional[Move]:
        if not self.move_history:
            return None
        move, captured = self.move_history.pop()
        self.unmake(move, captured)
        return move

    def __str__(self) -> str:
        lines = []
        for r, row in enumerate(self.grid):
            lines.append(f"{9 - r} " + " ".join(cell or EMPTY for cell in row))
        lines.append("  " + " ".join(chr(97 + c) for c in range(COLS)))
        return "\n".join(lines)
