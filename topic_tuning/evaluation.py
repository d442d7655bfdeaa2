"""
Scoring a single topic model configuration.

Each configuration is scored on two objectives, both maximized:
- probabilistic coherence of the topics, measured on the topic-fitting split
- accuracy of a random forest trained on document-topic features of the
  train split and scored on the validation split
"""

import time
import logging
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from omegaconf import OmegaConf
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import accuracy_score
import scipy.sparse as sp

from topic_tuning.coherence import probabilistic_coherence, umass_coherence
from topic_tuning.data import CorpusSplits
from topic_tuning.models import build_model
from topic_tuning.pareto import FAILED_SCORES
from topic_tuning.utils import format_params


# Global cache for evaluations to avoid refitting the same configuration
EVAL_CACHE = {}


def clear_cache():
    EVAL_CACHE.clear()


def _cache_key(model_name: str, params: Dict, seed: int, splits: CorpusSplits, cfg):
    # fitting and scoring settings change the observation as much as params do
    settings = tuple(
        (section, tuple(sorted(OmegaConf.to_container(cfg[section], resolve=True).items())))
        for section in (model_name, "coherence", "classifier")
        if section in cfg
    )
    return (model_name, tuple(sorted(params.items())), int(seed), settings, id(splits))


def _make_classifier(cfg, seed: int) -> RandomForestClassifier:
    opts = cfg.classifier
    return RandomForestClassifier(
        n_estimators=int(opts.n_estimators),
        max_depth=None if opts.max_depth is None else int(opts.max_depth),
        n_jobs=int(opts.n_jobs),
        random_state=int(seed)
    )


def _log(logger: Optional[logging.Logger], level: int, msg: str):
    (logger or logging.getLogger(__name__)).log(level, msg)


def evaluate_configuration(
    model_name: str,
    params: Dict,
    splits: CorpusSplits,
    cfg,
    logger: Optional[logging.Logger] = None
) -> Dict:
    """
    Fit a topic model and a downstream classifier, and score both objectives.

    Args:
        model_name: 'lda' or 'lsa'
        params: Decoded search parameters
        splits: Four-way corpus split
        cfg: Experiment config
        logger: Optional logger instance

    Returns:
        Observation dictionary:
            - model, params: the configuration
            - coherence: mean probabilistic coherence on the topic split
            - umass: mean UMass coherence on the topic split
            - accuracy: classifier accuracy on the validation split
            - n_topics_fitted: topics actually fitted (LSA may cap it)
            - fit_time, eval_time: seconds spent fitting / scoring
            - failed: True if fitting or scoring raised
    """
    seed = int(cfg.seed)
    key = _cache_key(model_name, params, seed, splits, cfg)
    if key in EVAL_CACHE:
        _log(logger, logging.DEBUG, f"Using cached result for {model_name}: {format_params(params)}")
        return EVAL_CACHE[key]

    _log(logger, logging.INFO, f"Evaluating {model_name.upper()}: {format_params(params)}")

    res = {"model": model_name, "params": dict(params)}
    t0 = time.perf_counter()
    try:
        model = build_model(model_name, params, cfg, seed=seed)
        theta_topic = model.fit_transform(splits.topic.X)
        fit_time = time.perf_counter() - t0

        t1 = time.perf_counter()
        top_n = int(cfg.coherence.top_n)
        top_terms = model.top_terms(top_n)
        coherence = probabilistic_coherence(top_terms, splits.topic.X, top_n)
        umass = umass_coherence(top_terms, splits.topic.X, top_n)

        clf = _make_classifier(cfg, seed)
        clf.fit(model.transform(splits.train.X), splits.train.y)
        predictions = clf.predict(model.transform(splits.validation.X))
        accuracy = float(accuracy_score(splits.validation.y, predictions))
        eval_time = time.perf_counter() - t1

        res.update({
            "coherence": coherence,
            "umass": umass,
            "accuracy": accuracy,
            "n_topics_fitted": int(theta_topic.shape[1]),
            "fit_time": fit_time,
            "eval_time": eval_time,
            "failed": False,
        })
        _log(
            logger, logging.INFO,
            f"Done in {fit_time + eval_time:.2f}s | coherence={coherence:.4f}, accuracy={accuracy:.4f}"
        )
    except Exception as ex:
        _log(logger, logging.WARNING, f"Evaluation failed for {model_name}: {format_params(params)}: {ex}")
        res.update({
            **FAILED_SCORES,
            "umass": float("nan"),
            "n_topics_fitted": 0,
            "fit_time": time.perf_counter() - t0,
            "eval_time": 0.0,
            "failed": True,
            "error": str(ex),
        })

    EVAL_CACHE[key] = res
    return res


def make_objective(
    model_name: str,
    splits: CorpusSplits,
    cfg,
    logger: Optional[logging.Logger] = None
) -> Callable:
    """
    Create objective function that returns (coherence, accuracy).

    Args:
        model_name: 'lda' or 'lsa'
        splits: Four-way corpus split
        cfg: Experiment config
        logger: Optional logger

    Returns:
        Objective function that takes a params dict
    """
    def objective(params: Dict) -> Tuple[float, float]:
        r = evaluate_configuration(model_name, params, splits, cfg, logger=logger)
        return r["coherence"], r["accuracy"]
    return objective


def make_eval_func(
    model_name: str,
    splits: CorpusSplits,
    cfg,
    logger: Optional[logging.Logger] = None
) -> Callable:
    """
    Create evaluation function that returns the full observation.

    Args:
        model_name: 'lda' or 'lsa'
        splits: Four-way corpus split
        cfg: Experiment config
        logger: Optional logger

    Returns:
        Eval function that takes a params dict and returns an observation dict
    """
    def eval_func(params: Dict) -> Dict:
        return evaluate_configuration(model_name, params, splits, cfg, logger=logger)
    return eval_func


def evaluate_on_test(
    model_name: str,
    params: Dict,
    splits: CorpusSplits,
    cfg,
    logger: Optional[logging.Logger] = None
) -> Dict:
    """
    Held-out evaluation of one configuration.

    The topic model is refit on the topic split and the classifier on train and
    validation together; accuracy is measured on the test split.
    """
    seed = int(cfg.seed)
    top_n = int(cfg.coherence.top_n)

    model = build_model(model_name, params, cfg, seed=seed)
    model.fit(splits.topic.X)
    top_terms = model.top_terms(top_n)

    X_fit = sp.vstack([splits.train.X, splits.validation.X]).tocsr()
    y_fit = np.concatenate([splits.train.y, splits.validation.y])
    clf = _make_classifier(cfg, seed)
    clf.fit(model.transform(X_fit), y_fit)
    test_accuracy = float(accuracy_score(splits.test.y, clf.predict(model.transform(splits.test.X))))

    result = {
        "model": model_name,
        "params": dict(params),
        "coherence": probabilistic_coherence(top_terms, splits.topic.X, top_n),
        "test_accuracy": test_accuracy,
        "top_terms": [[splits.topic.term(int(i)) for i in terms] for terms in top_terms],
    }
    _log(
        logger, logging.INFO,
        f"Test {model_name.upper()}: {format_params(params)} | test accuracy={test_accuracy:.4f}"
    )
    return result
