"""
Optimizers package for topic model hyperparameter search.

Contains:
- nsga2: NSGA-II multi-objective genetic algorithm (DEAP)
- random_search: Latin hypercube + uniform random search baseline
"""

from .nsga2 import NSGA2Optimizer
from .random_search import RandomSearchOptimizer

OPTIMIZERS = {
    "nsga2": NSGA2Optimizer,
    "random": RandomSearchOptimizer,
}


def get_optimizer(name: str):
    """Optimizer class by name."""
    key = name.lower()
    if key not in OPTIMIZERS:
        raise ValueError(f"Unknown algorithm '{name}'. Choose from {sorted(OPTIMIZERS)}")
    return OPTIMIZERS[key]


__all__ = [
    'NSGA2Optimizer',
    'RandomSearchOptimizer',
    'OPTIMIZERS',
    'get_optimizer'
]
