"""FastAPI REST interface for the engine."""

import threading

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from typing import List, Optional

from xqengine.config import CONFIG
from xqengine.core.board import Board, BoardFormatError, RED, opponent
from xqengine.core.evaluator import Evaluator
from xqengine.core.movegen import has_legal_move, in_check, legal_moves
from xqengine.core.search import SearchEngine

app = FastAPI(title=CONFIG.ui.engine_name, version="0.1.0")

engine = SearchEngine(Evaluator(), depth=CONFIG.search.depth)
board = Board.initial()
_board_lock = threading.Lock()


class PositionRequest(BaseModel):
    code: str
    side: str = RED


class MoveRequest(BaseModel):
    move: str  # coordinate format e.g. "h2e2"


class SearchRequest(BaseModel):
    depth: Optional[int] = Field(None, ge=1)


class Candidate(BaseModel):
    move: str
    score: int


class SearchResponse(BaseModel):
    best_move: Optional[str]
    score: int
    candidates: List[Candidate]
    status: str
    depth: int
    planned_depth: int
    nodes: int
    elapsed_ms: float
    code: str


def _board_state():
    moves = legal_moves(board, board.side)
    return {
        "code": board.to_code(),
        "side": board.side,
        "legal_moves": [m.uci() for m in moves],
        "in_check": in_check(board, board.side),
        "game_over": not has_legal_move(board, board.side),
        "history": [m.uci() for m, _ in board.move_history],
    }


@app.get("/board")
def get_board():
    with _board_lock:
        return _board_state()


@app.get("/position")
def export_position():
    with _board_lock:
        return {"code": board.to_code(), "side": board.side}


@app.post("/position")
def set_position(req: PositionRequest):
    global board
    with _board_lock:
        try:
            board = Board.from_code(req.code, req.side)
        except BoardFormatError as e:
            raise HTTPException(
                status_code=400,
                detail={"error": f"Invalid board code: {e}", "row": e.row, "col": e.col},
            )
        return {"code": board.to_code(), "side": board.side}


@app.post("/move")
def make_move(req: MoveRequest):
    with _board_lock:
        if not board.push_uci(req.move):
            raise HTTPException(status_code=400, detail=f"Illegal move: {req.move}")
        return {"code": board.to_code(), "move": req.move, "side": board.side}


@app.post("/undo")
def undo_move():
    with _board_lock:
        move = board.pop()
        if move is None:
            raise HTTPException(status_code=400, detail="No move to undo")
        return {"code": board.to_code(), "undone": move.uci(), "side": board.side}


@app.post("/search", response_model=SearchResponse)
def search_move(req: SearchRequest = SearchRequest()):
    with _board_lock:
        search_board = board.copy()

    result = engine.search(search_board, req.depth)
    return SearchResponse(
        best_move=result.best_move.uci() if result.best_move else None,
        score=result.score,
        candidates=[Candidate(move=m.uci(), score=s) for m, s in result.candidates],
        status=result.status,
        depth=result.depth,
        planned_depth=result.planned_depth,
        nodes=result.nodes,
        elapsed_ms=result.elapsed_ms,
        code=search_board.to_code(),
    )


@app.post("/side")
def toggle_side():
    with _board_lock:
        board.side = opponent(board.side)
        board.move_history.clear()
        return {"side": board.side}


@app.post("/clear")
def clear_board():
    global board
    with _board_lock:
        board = Board(side=board.side)
        return {"code": board.to_code()}


@app.post("/reset")
def reset_board():
    global board
    with _board_lock:
        board = Board.initial()
        return {"code": board.to_code()}
