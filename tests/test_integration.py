"""
Integration test suite for the xqengine Xiangqi engine.

Tests components working together end-to-end:
- Engine vs engine play on small endgames
- Engine wrapper (position import/export, moves, undo)
- FastAPI REST API integration
- Background search lifecycle (start/stop/callback)
- Config loading from TOML
- Terminal interface smoke test
"""

import logging
import threading

import pytest

from xqengine.config import Config, SearchConfig
from xqengine.core.board import BLACK, INITIAL_ROWS, RED, Board, BoardFormatError
from xqengine.core.evaluator import MATE_SCORE
from xqengine.core.movegen import legal_moves
from xqengine.core.search import SearchEngine
from xqengine.main import Engine

HANGING_ROOK = [
    ".....k...",
    ".........",
    ".........",
    ".........",
    ".........",
    "R.......r",
    ".........",
    ".........",
    ".........",
    "...K.....",
]

MATE_IN_ONE = "...k...../........R/........./........./........./R......../........./........./........./.....K..."
RED_CHECKMATED = "...k...../........./........./........./........./........./........./........./........r/r...K...."

SMALL_ENDGAME = [
    "...k.....",
    ".....r...",
    ".c.......",
    ".........",
    ".........",
    "....p....",
    ".........",
    "..R......",
    "......H..",
    "....K....",
]


def quick_engine(depth=1):
    cfg = SearchConfig(depth=depth, dynamic_depth=False, time_base_ms=600000, time_per_depth_ms=0)
    return SearchEngine(config=cfg)


# ════════════════════════════════════════════════════════════════════════════
#  ENGINE VS ENGINE
# ════════════════════════════════════════════════════════════════════════════


class TestFullGame:
    """The engine keeps producing legal moves while playing itself."""

    def test_engine_vs_engine_endgame(self):
        board = Board.from_code(SMALL_ENDGAME)
        engine = quick_engine()
        for _ in range(6):
            result = engine.search(board)
            if result.best_move is None:
                break
            assert result.best_move in legal_moves(board, board.side)
            board.push(result.best_move)
        assert len(board.move_history) > 0

    def test_engine_converts_mate(self):
        board = Board.from_code(MATE_IN_ONE)
        result = quick_engine(2).search(board)
        board.push(result.best_move)
        follow_up = quick_engine(1).search(board)
        assert follow_up.best_move is None
        assert follow_up.score == MATE_SCORE


# ════════════════════════════════════════════════════════════════════════════
#  ENGINE WRAPPER
# ════════════════════════════════════════════════════════════════════════════


class TestEngineWrapper:
    def test_best_move_grabs_rook(self):
        engine = Engine(depth=1)
        engine.set_position(HANGING_ROOK)
        move, score = engine.get_best_move()
        assert move == "a4i4"
        assert score > 300

    def test_moves_and_undo(self):
        engine = Engine(depth=1)
        assert len(engine.legal_moves()) == 44
        assert engine.make_move("h2e2")
        assert engine.board.side == BLACK
        assert not engine.make_move("h2e2")
        assert engine.undo_move()
        assert not engine.undo_move()
        assert engine.export_position() == "/".join(INITIAL_ROWS)

    def test_malformed_position_keeps_game(self):
        engine = Engine(depth=1)
        engine.make_move("h2e2")
        before = engine.export_position()
        with pytest.raises(BoardFormatError):
            engine.set_position("rheakaehr/too/short")
        assert engine.export_position() == before
        assert len(engine.board.move_history) == 1

    def test_toggle_clear_reset(self):
        engine = Engine(depth=1)
        assert not engine.is_game_over()
        engine.make_move("h2e2")
        assert engine.toggle_side() == RED
        assert engine.board.move_history == []
        engine.clear()
        assert engine.board.count_pieces() == 0
        engine.reset()
        assert engine.export_position() == "/".join(INITIAL_ROWS)

    def test_analyse_reports_progress(self):
        engine = Engine(depth=1)
        engine.set_position(HANGING_ROOK)
        seen = []
        result = engine.analyse(progress=lambda d, total: seen.append(d))
        assert seen == list(range(1, result.depth + 1))


# ════════════════════════════════════════════════════════════════════════════
#  BACKGROUND SEARCH
# ════════════════════════════════════════════════════════════════════════════


class TestAsyncSearch:
    def test_start_search_callback(self):
        done = threading.Event()
        received = []
        engine = quick_engine(2)

        def on_done(result):
            received.append(result)
            done.set()

        engine.start_search(Board.from_code(HANGING_ROOK), callback=on_done)
        assert done.wait(timeout=60)
        assert received[0].best_move.uci() == "a4i4"

    def test_stop_before_start_is_safe(self):
        engine = quick_engine()
        engine.stop()
        assert not engine.is_running()

    def test_stop_ends_between_iterations(self):
        done = threading.Event()
        received = []
        engine = quick_engine(6)
        engine.start_search(
            Board.from_code(SMALL_ENDGAME),
            callback=lambda r: (received.append(r), done.set()),
            progress=lambda d, total: engine.stop(timeout=0) if d == 1 else None,
        )
        assert done.wait(timeout=120)
        assert received[0].depth == 1
        assert received[0].best_move is not None


# ════════════════════════════════════════════════════════════════════════════
#  REST API
# ════════════════════════════════════════════════════════════════════════════


class TestAPIIntegration:
    @pytest.fixture(autouse=True)
    def setup_client(self):
        from fastapi.testclient import TestClient
        from interface.api import app

        self.client = TestClient(app)
        self.client.post("/reset")

    def test_get_board_initial(self):
        response = self.client.get("/board")
        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "/".join(INITIAL_ROWS)
        assert data["side"] == RED
        assert data["in_check"] is False
        assert data["game_over"] is False
        assert len(data["legal_moves"]) == 44

    def test_post_move_valid(self):
        response = self.client.post("/move", json={"move": "h2e2"})
        assert response.status_code == 200
        data = response.json()
        assert data["side"] == BLACK
        assert data["code"].split("/")[7] == ".C..C...."

    def test_post_move_illegal(self):
        assert self.client.post("/move", json={"move": "a0a5"}).status_code == 400
        assert self.client.post("/move", json={"move": "nonsense"}).status_code == 400

    def test_undo(self):
        self.client.post("/move", json={"move": "h2e2"})
        response = self.client.post("/undo")
        assert response.status_code == 200
        assert response.json()["undone"] == "h2e2"
        assert self.client.post("/undo").status_code == 400

    def test_position_round_trip(self):
        response = self.client.post("/position", json={"code": MATE_IN_ONE, "side": "r"})
        assert response.status_code == 200
        assert self.client.get("/position").json() == {"code": MATE_IN_ONE, "side": RED}

    def test_position_invalid_reports_cell(self):
        bad = MATE_IN_ONE.replace("R........", "R...x....")
        response = self.client.post("/position", json={"code": bad})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["row"] == 5
        assert detail["col"] == 4
        # board unchanged
        assert self.client.get("/position").json()["code"] == "/".join(INITIAL_ROWS)

    def test_search_finds_mate(self):
        self.client.post("/position", json={"code": MATE_IN_ONE})
        response = self.client.post("/search", json={"depth": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["best_move"] is not None
        assert data["score"] > 90000
        assert data["candidates"][0]["move"] == data["best_move"]

    def test_search_checkmated(self):
        self.client.post("/position", json={"code": RED_CHECKMATED})
        assert self.client.get("/board").json()["game_over"] is True
        data = self.client.post("/search", json={}).json()
        assert data["status"] == "checkmated"
        assert data["best_move"] is None
        assert data["score"] == -MATE_SCORE
        assert data["candidates"] == []

    @pytest.mark.parametrize("depth", [0, -3])
    def test_search_rejects_non_positive_depth(self, depth):
        response = self.client.post("/search", json={"depth": depth})
        assert response.status_code == 422

    def test_side_and_clear(self):
        assert self.client.post("/side").json()["side"] == BLACK
        response = self.client.post("/clear")
        assert response.json()["code"] == "/".join(["........."] * 10)
        assert self.client.get("/board").json()["side"] == BLACK


# ════════════════════════════════════════════════════════════════════════════
#  CONFIG & CLI
# ════════════════════════════════════════════════════════════════════════════


class TestConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = Config.load_from_toml(str(tmp_path / "absent.toml"))
        assert cfg.search.depth == 3
        assert cfg.eval.piece_values["R"] == 600

    def test_load_from_toml(self, tmp_path, caplog):
        path = tmp_path / "config.toml"
        path.write_text(
            'log_level = "DEBUG"\n'
            "[search]\n"
            "depth = 5\n"
            "use_quiescence = false\n"
            "bogus = 1\n"
            "[eval]\n"
            "mobility_weight = 4\n"
        )
        with caplog.at_level(logging.WARNING):
            cfg = Config.load_from_toml(str(path))
        assert cfg.search.depth == 5
        assert cfg.search.use_quiescence is False
        assert cfg.eval.mobility_weight == 4
        assert cfg.log_level == "DEBUG"
        assert "bogus" in caplog.text


class TestCLI:
    def test_quit(self, monkeypatch, capsys):
        from interface import cli

        monkeypatch.setattr("builtins.input", lambda prompt="": "quit")
        assert cli.main(1) == 0
        assert "a b c d e f g h i" in capsys.readouterr().out
