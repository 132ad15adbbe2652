import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from xqengine.config import CONFIG, SearchConfig
from xqengine.core.board import CANNON, RED, Board, Move
from xqengine.core.evaluator import MATE_SCORE, Evaluator
from xqengine.core.movegen import gives_check, in_check, legal_moves, tactical_moves
from xqengine.core.ordering import HistoryTable, KillerTable, MoveOrderer
from xqengine.core.transposition import (
    TT_EXACT, TT_LOWER, TT_UPPER, ZOBRIST, RepetitionTracker, TranspositionTable,
)
from xqengine.core.utils import format_info

logger = logging.getLogger(__name__)

INF = 1000000
MAX_PLY = 64

STATUS_OK = "ok"
STATUS_CHECKMATED = "checkmated"
STATUS_NO_LEGAL_MOVE = "no_legal_move"

ProgressCallback = Callable[[int, int], None]


@dataclass
class DepthPlan:
    depth: int
    piece_count: int
    move_count: int
    in_check: bool


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score: int  # positive favours red
    candidates: List[Tuple[Move, int]] = field(default_factory=list)
    status: str = STATUS_OK
    depth: int = 0
    planned_depth: int = 0
    nodes: int = 0
    elapsed_ms: float = 0.0


def estimate_dynamic_depth(board: Board, base: int, cap: int = 7) -> DepthPlan:
    """Adjust the requested depth to material, mobility and check status."""
    piece_count = board.count_pieces()
    move_count = len(legal_moves(board, board.side))
    checked = in_check(board, board.side)
    depth = base

    if piece_count <= 10:
        depth += 2
    elif piece_count <= 16:
        depth += 1
    elif piece_count >= 26:
        depth -= 1

    if move_count <= 10:
        depth += 1
    elif move_count >= 32:
        depth -= 1

    if checked:
        depth += 1

    upper = min(cap, base + 2)
    lower = min(max(1, base - 1), upper)
    return DepthPlan(max(lower, min(upper, depth)), piece_count, move_count, checked)


def time_budget_ms(depth: int, cfg: Optional[SearchConfig] = None) -> int:
    cfg = cfg or CONFIG.search
    return cfg.time_base_ms + depth * cfg.time_per_depth_ms


class SearchContext:
    """All mutable state of one top-level search.

    The context owns its board; make/unmake goes through `applied()` so the
    board, the incremental hash and the repetition counts are restored on
    every exit path.
    """

    def __init__(self, board: Board, repetition_limit: int = 3, max_ply: int = MAX_PLY):
        self.board = board
        self.hash = ZOBRIST.hash(board)
        self.repetitions = RepetitionTracker(repetition_limit)
        self.tt = TranspositionTable()
        self.killers = KillerTable(max_ply)
        self.history = HistoryTable()
        self.orderer = MoveOrderer(self.killers, self.history)
        self.nodes = 0
        self._seed_repetitions()

    def _seed_repetitions(self) -> None:
        """Count positions already played in the game, oldest first."""
        scratch = self.board.copy()
        keys = [self.hash]
        for move, captured in reversed(scratch.move_history):
            scratch.unmake(move, captured)
            keys.append(ZOBRIST.hash(scratch))
        for key in reversed(keys):
            self.repetitions.push(key)

    @contextmanager
    def applied(self, move: Move) -> Iterator[Optional[str]]:
        board = self.board
        piece = board.grid[move.from_row][move.from_col]
        captured = board.make(move)
        self.hash ^= ZOBRIST.move_delta(piece, move, captured)
        self.repetitions.push(self.hash)
        try:
            yield captured
        finally:
            self.repetitions.pop()
            self.hash ^= ZOBRIST.move_delta(piece, move, captured)
            board.unmake(move, captured)

    def verify_hash(self) -> bool:
        return self.hash == ZOBRIST.hash(self.board)


class SearchEngine:
    def __init__(self, evaluator: Optional[Evaluator] = None, depth: Optional[int] = None,
                 config: Optional[SearchConfig] = None):
        self.cfg = config or CONFIG.search
        self.evaluator = evaluator or Evaluator()
        self.max_depth = depth if depth is not None else self.cfg.depth
        self.ctx: Optional[SearchContext] = None
        self.last_result: Optional[SearchResult] = None

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def nodes(self) -> int:
        return self.ctx.nodes if self.ctx else 0

    def plan(self, board: Board, depth: Optional[int] = None) -> DepthPlan:
        base = depth if depth is not None else self.max_depth
        if base < 1:
            raise ValueError(f"Search depth must be at least 1, got {base}")
        if self.cfg.dynamic_depth:
            return estimate_dynamic_depth(board, base, self.cfg.max_depth_cap)
        return DepthPlan(max(1, min(base, self.cfg.max_depth_cap)), board.count_pieces(),
                         len(legal_moves(board, board.side)), in_check(board, board.side))

    def search(self, board: Board, depth: Optional[int] = None,
               progress: Optional[ProgressCallback] = None,
               should_stop: Optional[Callable[[], bool]] = None) -> SearchResult:
        """Iterative deepening from depth 1 up to the planned depth.

        The time budget and `should_stop` are checked between iterations
        only; an iteration that has started always runs to completion.
        """
        start = time.perf_counter()
        plan = self.plan(board, depth)
        budget = time_budget_ms(plan.depth, self.cfg)
        ctx = SearchContext(board.copy(), self.cfg.repetition_limit)
        self.ctx = ctx
        logger.debug("search plan: depth %d (pieces %d, moves %d, check %s), budget %d ms",
                     plan.depth, plan.piece_count, plan.move_count, plan.in_check, budget)

        result: Optional[SearchResult] = None
        for d in range(1, plan.depth + 1):
            if result is not None:
                if (time.perf_counter() - start) * 1000 > budget:
                    break
                if should_stop and should_stop():
                    break

            result = self._search_root(ctx, d)
            elapsed = (time.perf_counter() - start) * 1000
            logger.info(format_info(d, plan.depth, result.score, ctx.nodes, elapsed,
                                    result.best_move, self.cfg.near_mate))
            if progress:
                progress(d, plan.depth)

            if result.best_move is None:
                break
            if abs(result.score) > self.cfg.near_mate:
                break
            if elapsed > budget:
                break

        result.planned_depth = plan.depth
        result.nodes = ctx.nodes
        result.elapsed_ms = (time.perf_counter() - start) * 1000
        self.last_result = result
        return result

    def start_search(self, board: Board, depth: Optional[int] = None,
                     callback: Optional[Callable[[SearchResult], None]] = None,
                     progress: Optional[ProgressCallback] = None):
        """Run `search` on a background thread; `stop()` ends it between iterations."""
        if self._thread and self._thread.is_alive(): return
        self._stop_event.clear()
        search_board = board.copy()

        def worker():
            result = self.search(search_board, depth, progress=progress,
                                 should_stop=self._stop_event.is_set)
            if callback: callback(result)

        self._thread = threading.Thread(target=worker, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 0.2):
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # ---- search internals --------------------------------------------

    def _static(self, ctx: SearchContext) -> int:
        score = self.evaluator.evaluate(ctx.board)
        return score if ctx.board.side == RED else -score

    def _search_root(self, ctx: SearchContext, depth: int) -> SearchResult:
        board = ctx.board
        side = board.side
        color = 1 if side == RED else -1
        moves = legal_moves(board, side)
        if not moves:
            status = STATUS_CHECKMATED if in_check(board, side) else STATUS_NO_LEGAL_MOVE
            return SearchResult(None, -color * MATE_SCORE, [], status, depth)

        entry = ctx.tt.get(ctx.hash) if self.cfg.use_transposition else None
        ordered = ctx.orderer.order(board, moves, side, 0, entry.best_move if entry else None)

        scored: List[Tuple[Move, int]] = []
        best_move, best_value = None, -INF
        for move in ordered:
            # full window at the root so every candidate score is exact
            with ctx.applied(move):
                value = -self._negamax(ctx, depth - 1, -INF, INF, 1)
            scored.append((move, value))
            if value > best_value:
                best_value, best_move = value, move

        ctx.tt.store(ctx.hash, depth, best_value, TT_EXACT, best_move)
        scored.sort(key=lambda x: -x[1])
        candidates = [(m, v * color) for m, v in scored[:self.cfg.candidates]]
        return SearchResult(best_move, best_value * color, candidates, STATUS_OK, depth)

    def _negamax(self, ctx: SearchContext, depth: int, alpha: int, beta: int, ply: int) -> int:
        ctx.nodes += 1
        if ctx.repetitions.is_draw(ctx.hash):
            return 0
        if depth <= 0:
            if self.cfg.use_quiescence:
                return self._quiescence(ctx, alpha, beta, self.cfg.q_max_depth)
            return self._static(ctx)

        board = ctx.board
        side = board.side
        alpha_orig, beta_orig = alpha, beta

        # TT Lookup
        tt_move = None
        if self.cfg.use_transposition:
            tt_entry = ctx.tt.get(ctx.hash)
            if tt_entry:
                tt_move = tt_entry.best_move
                if tt_entry.depth >= depth:
                    if tt_entry.flag == TT_EXACT: return tt_entry.value
                    elif tt_entry.flag == TT_LOWER: alpha = max(alpha, tt_entry.value)
                    elif tt_entry.flag == TT_UPPER: beta = min(beta, tt_entry.value)
                    if alpha >= beta: return tt_entry.value

        moves = legal_moves(board, side)
        if not moves:
            # checkmate or stalemate: both lose in xiangqi
            return -(MATE_SCORE - ply)

        best_value = -INF
        best_move = None
        for move in ctx.orderer.order(board, moves, side, ply, tt_move):
            extend = 0
            if (self.cfg.cannon_check_extension and depth > 1 and ply < MAX_PLY
                    and board.grid[move.from_row][move.from_col].upper() == CANNON
                    and gives_check(board, move, side)):
                extend = 1

            with ctx.applied(move) as captured:
                value = -self._negamax(ctx, depth - 1 + extend, -beta, -alpha, ply + 1)

            if value > best_value:
                best_value = value
                best_move = move
            if value > alpha:
                alpha = value
            if alpha >= beta:
                if captured is None:
                    ctx.killers.add(ply, move)
                    ctx.history.add(side, move, depth)
                break

        if best_value <= alpha_orig:
            flag = TT_UPPER
        elif best_value >= beta_orig:
            flag = TT_LOWER
        else:
            flag = TT_EXACT
        if self.cfg.use_transposition:
            ctx.tt.store(ctx.hash, depth, best_value, flag, best_move)
        return best_value

    def _quiescence(self, ctx: SearchContext, alpha: int, beta: int, depth: int) -> int:
        ctx.nodes += 1
        if ctx.repetitions.is_draw(ctx.hash):
            return 0

        stand_pat = self._static(ctx)
        if depth <= 0: return stand_pat
        if stand_pat >= beta: return beta
        if stand_pat > alpha: alpha = stand_pat

        board = ctx.board
        # MVV-LVA only; the root check and threat-swing nudges are not applied here
        moves = MoveOrderer.order_captures(board, tactical_moves(board, board.side))
        for move in moves:
            with ctx.applied(move):
                score = -self._quiescence(ctx, -beta, -alpha, depth - 1)
            if score >= beta: return beta
            if score > alpha: alpha = score

        return alpha
