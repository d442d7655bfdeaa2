"""
Hyperparameter search spaces.

Every parameter maps to the unit interval so optimizers can work in [0, 1]^d
regardless of the parameter's type or scale.
"""

import math
from typing import Any, Dict, List, Sequence

import numpy as np


def _unit(x: float) -> float:
    x = float(x)
    if math.isnan(x):
        return 0.5
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else x


class IntParameter:
    """Integer parameter in [low, high], optionally on a log scale."""

    def __init__(self, name: str, low: int, high: int, log: bool = False):
        if low > high:
            raise ValueError(f"{name}: low={low} > high={high}")
        if log and low <= 0:
            raise ValueError(f"{name}: log scale needs a positive lower bound")
        self.name = name
        self.low = int(low)
        self.high = int(high)
        self.log = log

    def decode(self, u: float) -> int:
        u = _unit(u)
        if self.log:
            v = math.exp(math.log(self.low) + u * (math.log(self.high) - math.log(self.low)))
        else:
            v = self.low + u * (self.high - self.low)
        return int(min(self.high, max(self.low, round(v))))

    def encode(self, value) -> float:
        value = min(self.high, max(self.low, int(value)))
        if self.high == self.low:
            return 0.0
        if self.log:
            return (math.log(value) - math.log(self.low)) / (math.log(self.high) - math.log(self.low))
        return (value - self.low) / (self.high - self.low)

    def __repr__(self):
        return f"IntParameter({self.name!r}, {self.low}, {self.high}, log={self.log})"


class FloatParameter:
    """Real-valued parameter in [low, high], optionally on a log scale."""

    def __init__(self, name: str, low: float, high: float, log: bool = False):
        if low > high:
            raise ValueError(f"{name}: low={low} > high={high}")
        if log and low <= 0:
            raise ValueError(f"{name}: log scale needs a positive lower bound")
        self.name = name
        self.low = float(low)
        self.high = float(high)
        self.log = log

    def decode(self, u: float) -> float:
        u = _unit(u)
        if self.log:
            v = math.exp(math.log(self.low) + u * (math.log(self.high) - math.log(self.low)))
        else:
            v = self.low + u * (self.high - self.low)
        return float(min(self.high, max(self.low, v)))

    def encode(self, value) -> float:
        value = min(self.high, max(self.low, float(value)))
        if self.high == self.low:
            return 0.0
        if self.log:
            return (math.log(value) - math.log(self.low)) / (math.log(self.high) - math.log(self.low))
        return (value - self.low) / (self.high - self.low)

    def __repr__(self):
        return f"FloatParameter({self.name!r}, {self.low}, {self.high}, log={self.log})"


class CategoricalParameter:
    """Parameter taking one of a fixed list of choices; [0, 1] is cut into equal bins."""

    def __init__(self, name: str, choices: Sequence[Any]):
        if not choices:
            raise ValueError(f"{name}: no choices")
        self.name = name
        self.choices = list(choices)

    def decode(self, u: float):
        u = _unit(u)
        idx = min(int(u * len(self.choices)), len(self.choices) - 1)
        return self.choices[idx]

    def encode(self, value) -> float:
        if value not in self.choices:
            raise ValueError(f"{self.name}: {value!r} not in {self.choices}")
        # Center of the bin
        return (self.choices.index(value) + 0.5) / len(self.choices)

    def __repr__(self):
        return f"CategoricalParameter({self.name!r}, {self.choices})"


class SearchSpace:
    """An ordered collection of parameters."""

    def __init__(self, parameters: List):
        names = [p.name for p in parameters]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate parameter names: {names}")
        self.parameters = list(parameters)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.parameters]

    @property
    def dim(self) -> int:
        return len(self.parameters)

    def decode(self, vector: Sequence[float]) -> Dict:
        if len(vector) != self.dim:
            raise ValueError(f"Expected vector of length {self.dim}, got {len(vector)}")
        return {p.name: p.decode(u) for p, u in zip(self.parameters, vector)}

    def encode(self, params: Dict) -> List[float]:
        missing = [n for n in self.names if n not in params]
        if missing:
            raise ValueError(f"Missing parameters: {missing}")
        return [float(p.encode(params[p.name])) for p in self.parameters]

    def sample(self, rng: np.random.Generator) -> Dict:
        return self.decode(rng.random(self.dim).tolist())

    def latin_hypercube(self, n: int, rng: np.random.Generator) -> List[List[float]]:
        """
        Latin hypercube sample of `n` unit-cube vectors.

        Each dimension is divided into `n` strata and every stratum holds exactly one point.
        """
        if n < 1:
            return []
        samples = np.empty((n, self.dim))
        for d in range(self.dim):
            strata = (np.arange(n) + rng.random(n)) / n
            samples[:, d] = rng.permutation(strata)
        return samples.tolist()

    def __repr__(self):
        return f"SearchSpace({self.parameters})"


LDA_SPACE = SearchSpace([
    IntParameter("n_topics", 2, 100),
    FloatParameter("doc_topic_prior", 0.001, 5.0, log=True),
    FloatParameter("topic_word_prior", 0.001, 5.0, log=True),
    FloatParameter("learning_decay", 0.51, 1.0),
])

LSA_SPACE = SearchSpace([
    IntParameter("n_topics", 2, 100),
    CategoricalParameter("weighting", ["tf", "tfidf"]),
    CategoricalParameter("sublinear_tf", [False, True]),
    CategoricalParameter("normalize", [False, True]),
])

SPACES = {
    "lda": LDA_SPACE,
    "lsa": LSA_SPACE,
}


def get_space(model_name: str, n_topics_bounds=None) -> SearchSpace:
    """
    Search space for a model.

    Args:
        model_name: 'lda' or 'lsa'
        n_topics_bounds: Optional (low, high) override for the number of topics
    """
    key = model_name.lower()
    if key not in SPACES:
        raise ValueError(f"Unknown model '{model_name}'. Choose from {sorted(SPACES)}")
    space = SPACES[key]
    if n_topics_bounds is None:
        return space
    low, high = n_topics_bounds
    params = [IntParameter("n_topics", int(low), int(high)) if p.name == "n_topics" else p
              for p in space.parameters]
    return SearchSpace(params)
