"""
Experiment configuration.

Defaults live in DEFAULT_CONFIG; a YAML/JSON file and dotlist overrides
(e.g. ``search.iterations=40``) are merged on top with OmegaConf.
"""

import math
import os
from typing import Dict, List, Optional

from omegaconf import DictConfig, OmegaConf


MODELS = ("lda", "lsa")
ALGORITHMS = ("nsga2", "random")
SPLITS = ("topic", "train", "validation", "test")


# ==================== CONFIGURATION ====================

DEFAULT_CONFIG = {
    "seed": 42,
    "outdir": "results",

    "data": {
        # topic / train / validation / test
        "fractions": [0.4, 0.2, 0.2, 0.2],
        "min_df": 2,
        "max_df": 0.95,
        "max_features": 5000,
        "stop_words": "english",
    },

    "search": {
        "models": ["lda", "lsa"],
        "algorithm": "nsga2",
        "iterations": 10,
        "pop_size": 8,
        "batch_size": 8,
        "n_topics_min": 2,
        "n_topics_max": 100,
        "early_stop_eps_pct": 0.001,
        "max_no_improvement": 3,
        # NSGA-II
        "cxpb": 0.9,
        "eta_crossover": 15.0,
        "eta_mutation": 20.0,
    },

    "lda": {
        "max_iter": 20,
        "batch_size": 256,
        "learning_method": "online",
    },

    "lsa": {
        "n_iter": 5,
    },

    "coherence": {
        "top_n": 10,
    },

    "classifier": {
        "n_estimators": 100,
        "max_depth": None,
        "n_jobs": -1,
    },

    "report": {
        "enabled": True,
        "title": "Topic model tuning: LDA vs LSA",
        "frontier_on_test": True,
    },
}


def load_config(path: Optional[str] = None, overrides: Optional[List[str]] = None) -> DictConfig:
    """
    Build the experiment config.

    Args:
        path: Optional YAML/JSON config file merged over the defaults
        overrides: Optional dotlist overrides, e.g. ["search.iterations=40"]

    Returns:
        Validated DictConfig
    """
    layers = [OmegaConf.create(DEFAULT_CONFIG)]
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")
        layers.append(OmegaConf.load(path))
    if overrides:
        layers.append(OmegaConf.from_dotlist(list(overrides)))

    cfg = OmegaConf.merge(*layers)
    validate_config(cfg)
    return cfg


def validate_config(cfg: DictConfig):
    """Raise ValueError on settings no experiment can run with."""
    fractions = [float(f) for f in cfg.data.fractions]
    if len(fractions) != len(SPLITS):
        raise ValueError(f"data.fractions needs {len(SPLITS)} values {SPLITS}, got {fractions}")
    if any(f <= 0 for f in fractions):
        raise ValueError(f"data.fractions must all be positive, got {fractions}")
    if not math.isclose(sum(fractions), 1.0, abs_tol=1e-6):
        raise ValueError(f"data.fractions must sum to 1, got {sum(fractions):.6f}")

    search = cfg.search
    for key in ("iterations", "pop_size", "batch_size"):
        if int(search[key]) < 1:
            raise ValueError(f"search.{key} must be >= 1, got {search[key]}")
    if int(search.n_topics_min) < 2 or int(search.n_topics_max) < int(search.n_topics_min):
        raise ValueError(
            f"Invalid topic bounds: [{search.n_topics_min}, {search.n_topics_max}]"
        )
    unknown = [m for m in search.models if str(m).lower() not in MODELS]
    if unknown:
        raise ValueError(f"Unknown models {unknown}; choose from {MODELS}")
    if str(search.algorithm).lower() not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm '{search.algorithm}'; choose from {ALGORITHMS}")

    if int(cfg.coherence.top_n) < 2:
        raise ValueError(f"coherence.top_n must be >= 2, got {cfg.coherence.top_n}")


def config_to_dict(cfg: DictConfig) -> Dict:
    """Plain python container for JSON output."""
    return OmegaConf.to_container(cfg, resolve=True)
