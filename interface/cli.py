"""Terminal game: the human plays red, the engine answers as black."""

import sys
from typing import Optional

from xqengine.config import CONFIG, setup_logging
from xqengine.core.board import RED
from xqengine.main import Engine


def main(depth: Optional[int] = None) -> int:
    setup_logging()
    engine = Engine(depth=depth or CONFIG.search.depth)

    while True:
        print(engine.board)
        print("----------------------------")

        if engine.is_game_over():
            print("Game Over")
            print("Red has no move" if engine.board.side == RED else "Black has no move")
            return 0

        if engine.board.side == RED:
            user_move = input("Enter your move (e.g. h2e2, 'undo' or 'quit'): ").strip()
            if user_move == "quit":
                return 0
            if user_move == "undo":
                engine.undo_move()
                engine.undo_move()
                continue
            if not engine.make_move(user_move):
                print("Illegal move, try again.")
            continue

        result = engine.analyse()
        print(f"Engine plays: {result.best_move} | Eval: {result.score} | depth {result.depth}")
        for i, (move, score) in enumerate(result.candidates, 1):
            print(f"  {i}. {move} ({score})")
        engine.board.push(result.best_move)


if __name__ == "__main__":
    sys.exit(main(int(sys.argv[1]) if len(sys.argv) > 1 else None))
