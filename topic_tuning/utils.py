"""
Utils module for topic model tuning experiments.

This module contains:
- Logging utilities
- File I/O helpers
- Small numeric helpers
- Base optimizer class
"""

import time
import os
import csv
import json
import logging
from functools import wraps
from typing import Dict, List, Tuple, Callable, Optional, Sequence
from abc import ABC, abstractmethod

import numpy as np
from tensorboardX import SummaryWriter

from topic_tuning.pareto import frontier_observations, hypervolume_2d, FAILED_SCORES, REFERENCE_POINT
from topic_tuning.space import SearchSpace


# ==================== LOGGING SETUP ====================

def setup_logger(name: str, log_file: Optional[str] = None, level=logging.INFO) -> logging.Logger:
    """
    Setup logger with file and console handlers.

    Args:
        name: Logger name
        log_file: Path to log file (optional)
        level: Logging level

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers = []

    formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        ensure_dir(os.path.dirname(log_file))
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def timing_decorator(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger("topic_tuning.timing")

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        end = time.perf_counter()
        logger.info(f"[TIMING] {func.__name__} completed in {end - start:.2f}s")
        return result
    return wrapper


# ==================== FILE I/O ====================

def ensure_dir(path: str):
    """Create directory if it doesn't exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def write_history_csv(history: List[Dict], path: str):
    """Write rows to CSV file; columns are the union of all row keys."""
    if not history:
        return

    ensure_dir(os.path.dirname(path))
    fields = list(history[0].keys())
    for row in history[1:]:
        for key in row:
            if key not in fields:
                fields.append(key)

    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fields)
        writer.writeheader()
        for row in history:
            writer.writerow(row)


def save_json(data: Dict, path: str):
    """Save dictionary to JSON file."""
    ensure_dir(os.path.dirname(path))
    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=_json_default)


def load_json(path: str) -> Dict:
    """Load dictionary from JSON file."""
    with open(path, "r") as f:
        return json.load(f)


def _json_default(obj):
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def flatten_observation(obs: Dict) -> Dict:
    """Flatten nested params of an observation into `param_<name>` columns."""
    row = {k: v for k, v in obs.items() if k != "params"}
    for name, value in obs.get("params", {}).items():
        row[f"param_{name}"] = value
    return row


# ==================== UTILITY FUNCTIONS ====================

def clamp(x: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi] range."""
    return lo if x < lo else hi if x > hi else x


def format_params(params: Dict) -> str:
    parts = []
    for name, value in params.items():
        if isinstance(value, float):
            parts.append(f"{name}={value:.4g}")
        else:
            parts.append(f"{name}={value}")
    return ", ".join(parts)


# ==================== BASE OPTIMIZER CLASS ====================

class BaseOptimizer(ABC):
    """
    Abstract base class for all optimizers.

    All optimizers:
    1. Search a SearchSpace encoded in the unit cube
    2. Maximize (coherence, accuracy) jointly
    3. Support logging and TensorBoard
    4. Return standardized results built around the Pareto frontier
    """

    name = "BASE"

    def __init__(
        self,
        obj: Callable,
        eval_func: Optional[Callable],
        space: SearchSpace,
        seed: int = 42,
        early_stop_eps_pct: float = 0.01,
        max_no_improvement: int = 5,
        reference: Tuple[float, float] = REFERENCE_POINT,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize base optimizer.

        Args:
            obj: Objective function params -> (coherence, accuracy)
            eval_func: Evaluation function params -> observation dict
            space: Search space the optimizer proposes from
            seed: Random seed
            early_stop_eps_pct: Early stopping threshold on relative hypervolume change
            max_no_improvement: Number of iterations without improvement before stopping
            reference: Hypervolume reference point
            logger: Logger instance
        """
        self.obj = obj
        self.eval_func = eval_func
        self.space = space
        self.seed = int(seed)
        self.early_stop_eps_pct = float(early_stop_eps_pct)
        self.max_no_improvement = int(max_no_improvement)
        self.reference = tuple(reference)
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.rng = np.random.default_rng(self.seed)

        self.observations: List[Dict] = []
        self._no_improvement_count = 0
        self._prev_hypervolume = 0.0

    @abstractmethod
    def run(
        self,
        iterations: int,
        writer: Optional[SummaryWriter] = None,
        outdir: Optional[str] = None,
        initial_population: Optional[List] = None
    ) -> Dict:
        """
        Run optimization.

        Args:
            iterations: Number of iterations/generations
            writer: TensorBoard writer
            outdir: Output directory for saving observations
            initial_population: Optional initial points (unit-cube vectors or param dicts)

        Returns:
            Dictionary with:
                - observations: every evaluated configuration
                - frontier: Pareto-optimal observations
                - history: iteration-by-iteration history
                - hypervolume: final frontier hypervolume
                - total_time: total optimization time
                - avg_step_time: average time per iteration
                - stopped_early: whether early stopping was triggered
        """
        pass

    def decode(self, vector: Sequence[float]) -> Dict:
        """Decode a unit-cube vector to a parameter dict."""
        return self.space.decode(vector)

    def as_vector(self, point) -> List[float]:
        """Accept a param dict or a unit-cube vector; return the vector."""
        if isinstance(point, dict):
            return self.space.encode(point)
        return [clamp(float(v), 0.0, 1.0) for v in point]

    def evaluate(self, vector: Sequence[float]) -> Tuple[float, float]:
        """
        Evaluate a unit-cube vector, record the observation, return objectives.

        The objective supplies the two scores; the eval function, when given,
        supplies the rest of the observation (it hits the evaluation cache).
        """
        params = self.decode(vector)
        try:
            coherence, accuracy = (float(v) for v in self.obj(params))
            obs = dict(self.eval_func(params)) if self.eval_func is not None else {}
            obs.setdefault("failed", False)
        except Exception as ex:
            self.logger.warning(f"Evaluation failed for {format_params(params)}: {ex}")
            coherence, accuracy = FAILED_SCORES["coherence"], FAILED_SCORES["accuracy"]
            obs = {"failed": True, "error": str(ex)}

        obs["params"] = params
        obs["coherence"] = coherence
        obs["accuracy"] = accuracy
        obs["evaluation"] = len(self.observations)
        self.observations.append(obs)
        return coherence, accuracy

    def frontier(self) -> List[Dict]:
        return frontier_observations(self.observations)

    def hypervolume(self) -> float:
        front = self.frontier()
        return hypervolume_2d([(o["coherence"], o["accuracy"]) for o in front], self.reference)

    def update_early_stopping(self, hypervolume: float) -> float:
        """
        Update the no-improvement counter from the latest hypervolume.

        Returns:
            Relative hypervolume change since the previous iteration
        """
        prev = self._prev_hypervolume
        if prev > 0:
            relative_change = abs(hypervolume - prev) / prev
        else:
            # nothing beats the reference point yet: a zero volume is no change
            relative_change = 0.0 if hypervolume == prev else float('inf')
        if relative_change <= self.early_stop_eps_pct:
            self._no_improvement_count += 1
        else:
            self._no_improvement_count = 0
        self._prev_hypervolume = hypervolume
        return relative_change

    def should_stop(self) -> bool:
        return self._no_improvement_count >= self.max_no_improvement

    def history_row(self, iteration: int, step_time: float, cum_time: float,
                    relative_change: float = 0.0, **extra) -> Dict:
        """Build one history row summarizing the current state of the search."""
        ok = [o for o in self.observations if not o.get("failed")]
        coherences = [o["coherence"] for o in ok] or [float('nan')]
        accuracies = [o["accuracy"] for o in ok] or [float('nan')]
        front = self.frontier()
        row = {
            "iter": iteration,
            "evaluations": len(self.observations),
            "failed": len(self.observations) - len(ok),
            "best_coherence": float(np.max(coherences)),
            "best_accuracy": float(np.max(accuracies)),
            "mean_coherence": float(np.mean(coherences)),
            "mean_accuracy": float(np.mean(accuracies)),
            "frontier_size": len(front),
            "hypervolume": self.hypervolume(),
            "step_time": step_time,
            "cum_time": cum_time,
            "no_improvement_count": self._no_improvement_count,
            "relative_change_pct": relative_change * 100 if np.isfinite(relative_change) else float('inf'),
        }
        row.update(extra)
        return row

    def log_iteration(self, iteration: int, total: int, row: Dict):
        """
        Log iteration information.

        Args:
            iteration: Current iteration number
            total: Total number of iterations
            row: History row
        """
        self.logger.info(
            f"Iter {iteration + 1}/{total} | "
            f"best coherence={row['best_coherence']:.4f}, "
            f"best accuracy={row['best_accuracy']:.4f} | "
            f"frontier={row['frontier_size']}, HV={row['hypervolume']:.4f} | "
            f"No improvement: {row['no_improvement_count']}/{self.max_no_improvement}"
        )

    def write_scalars(self, writer: Optional[SummaryWriter], step: int, row: Dict):
        if writer is None:
            return
        tag = self.name
        writer.add_scalar(f"{tag}/Best/coherence", row["best_coherence"], step)
        writer.add_scalar(f"{tag}/Best/accuracy", row["best_accuracy"], step)
        writer.add_scalar(f"{tag}/Statistics/mean_coherence", row["mean_coherence"], step)
        writer.add_scalar(f"{tag}/Statistics/mean_accuracy", row["mean_accuracy"], step)
        writer.add_scalar(f"{tag}/Frontier/size", row["frontier_size"], step)
        writer.add_scalar(f"{tag}/Frontier/hypervolume", row["hypervolume"], step)
        writer.add_scalar(f"{tag}/Time/step_time", row["step_time"], step)
        writer.add_scalar(f"{tag}/Time/cumulative", row["cum_time"], step)
        writer.add_scalar(f"{tag}/EarlyStopping/no_improvement_count", row["no_improvement_count"], step)

    def save_observations(self, outdir: str, filename: str = "observations.csv"):
        """Save all evaluated configurations to CSV."""
        path = os.path.join(outdir, filename)
        write_history_csv([flatten_observation(o) for o in self.observations], path)
        self.logger.debug(f"Observations saved to {path}")

    def build_result(self, history: List[Dict], total_time: float) -> Dict:
        front = self.frontier()
        return {
            "observations": list(self.observations),
            "frontier": front,
            "history": history,
            "hypervolume": self.hypervolume(),
            "total_time": total_time,
            "avg_step_time": float(np.mean([h["step_time"] for h in history])) if history else 0.0,
            "stopped_early": self.should_stop(),
            "total_evaluations": len(self.observations),
            "algorithm": self.name,
        }
