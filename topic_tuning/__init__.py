"""
Topic Model Tuning Experiments

This package compares two topic models by hyperparameter search:
- Latent Dirichlet Allocation (LDA)
- Latent Semantic Analysis (LSA)

Each configuration is scored on topic coherence and on the accuracy of a
downstream classifier trained on document-topic features; the search keeps
the Pareto frontier of the two objectives.
"""

__version__ = "1.0.0"

from .config import load_config, DEFAULT_CONFIG
from .data import Corpus, CorpusSplits, load_bow_corpus, load_text_corpus, make_corpus, split_corpus
from .evaluation import evaluate_configuration, evaluate_on_test, make_objective, make_eval_func
from .optimizers import NSGA2Optimizer, RandomSearchOptimizer, get_optimizer
from .pareto import dominates, pareto_front, hypervolume_2d
from .space import get_space, LDA_SPACE, LSA_SPACE
from .utils import setup_logger

__all__ = [
    "load_config",
    "DEFAULT_CONFIG",
    "Corpus",
    "CorpusSplits",
    "load_bow_corpus",
    "load_text_corpus",
    "make_corpus",
    "split_corpus",
    "evaluate_configuration",
    "evaluate_on_test",
    "make_objective",
    "make_eval_func",
    "NSGA2Optimizer",
    "RandomSearchOptimizer",
    "get_optimizer",
    "dominates",
    "pareto_front",
    "hypervolume_2d",
    "get_space",
    "LDA_SPACE",
    "LSA_SPACE",
    "setup_logger",
]
