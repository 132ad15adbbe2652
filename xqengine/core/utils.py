def format_info(d, planned, score, nodes, elapsed_ms, best_move, near_mate):
        best_str = best_move.uci() if best_move else "-"
        nps = int(nodes * 1000 / elapsed_ms) if elapsed_ms > 0 else 0

        if abs(score) > near_mate:
            score_str = f"mate {'red' if score > 0 else 'black'}"
        else:
            score_str = f"cp {score}"

        return f"info depth {d}/{planned} score {score_str} nodes {nodes} nps {nps} time {int(elapsed_ms)} best {best_str}"
