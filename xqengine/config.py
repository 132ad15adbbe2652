# xqengine/config.py
from dataclasses import dataclass, field
from typing import Dict, Optional
import logging
import os
import tomllib

logger = logging.getLogger(__name__)

# Defaults (keyed by uppercase piece letter)
PIECE_VALUES = {
    "K": 10000,
    "A": 180,
    "E": 180,
    "H": 320,
    "R": 600,
    "C": 380,
    "P": 100,
}

@dataclass
class SearchConfig:
    depth: int = 3
    max_depth_cap: int = 7
    dynamic_depth: bool = True
    time_base_ms: int = 700
    time_per_depth_ms: int = 420
    use_quiescence: bool = True
    q_max_depth: int = 3
    use_transposition: bool = True
    cannon_check_extension: bool = True
    repetition_limit: int = 3
    near_mate: int = 90000
    candidates: int = 3
    zobrist_seed: Optional[int] = None

@dataclass
class EvalConfig:
    piece_values: Dict[str, int] = field(default_factory=lambda: PIECE_VALUES.copy())
    endgame_material: int = 2000  # non-king material below which kings activate
    mobility_weight: int = 2
    king_pressure_weight: int = 14
    passed_pawn_weights: Dict[str, int] = field(default_factory=lambda: {
        "base": 20, "per_rank": 4
    })
    pawn_structure_weights: Dict[str, int] = field(default_factory=lambda: {
        "connected_bonus": 8, "doubled_penalty": 10
    })
    king_safety_weights: Dict[str, int] = field(default_factory=lambda: {
        "advisor": 12, "elephant": 8, "missing_advisor": 18, "no_elephant": 10,
        "open_rook": 80, "screened_cannon": 60, "attacker": 12
    })

@dataclass
class UIConfig:
    engine_name: str = "xqengine"
    engine_author: str = "xqengine developers"
    api_port: int = 8000

@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "config.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("search", "eval", "ui"):
            if section not in raw:
                continue
            target = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(target, k):
                    setattr(target, k, v)
                else:
                    logger.warning("Unknown config key [%s].%s in %s", section, k, path)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from the config level (or an explicit one)."""
    logging.basicConfig(
        level=(level or CONFIG.log_level).upper(),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("ENGINE_CONFIG_TOML", "config.toml"))
# allow env override of depth and log level for quick debugging
override_depth = os.environ.get("ENGINE_SEARCH_DEPTH")
if override_depth:
    try:
        CONFIG.search.depth = int(override_depth)
    except ValueError:
        logger.warning("Ignoring non-integer ENGINE_SEARCH_DEPTH=%r", override_depth)
if os.environ.get("ENGINE_LOG_LEVEL"):
    CONFIG.log_level = os.environ["ENGINE_LOG_LEVEL"]
