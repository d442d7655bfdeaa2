"""Shared fixtures: small synthetic corpora with well separated classes."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import scipy.sparse as sp
from omegaconf import OmegaConf

from topic_tuning.config import DEFAULT_CONFIG
from topic_tuning.data import Corpus
from topic_tuning.evaluation import clear_cache


def synthetic_texts(n_per_class=30, n_classes=3, terms_per_class=12, doc_length=25, seed=0):
    """Texts whose classes draw mostly from disjoint vocabularies."""
    rng = np.random.default_rng(seed)
    texts, labels = [], []
    for c in range(n_classes):
        own = [f"cls{c}term{t}" for t in range(terms_per_class)]
        shared = [f"shared{t}" for t in range(5)]
        for _ in range(n_per_class):
            words = list(rng.choice(own, size=doc_length)) + list(rng.choice(shared, size=5))
            texts.append(" ".join(words))
            labels.append(f"class{c}")
    return texts, labels


def synthetic_corpus(n_per_class=30, n_classes=3, terms_per_class=12, doc_length=25, seed=0):
    rng = np.random.default_rng(seed)
    n_terms = n_classes * terms_per_class
    rows, ys = [], []
    for c in range(n_classes):
        for _ in range(n_per_class):
            counts = np.zeros(n_terms)
            own = rng.integers(c * terms_per_class, (c + 1) * terms_per_class, size=doc_length)
            noise = rng.integers(0, n_terms, size=2)
            np.add.at(counts, own, 1)
            np.add.at(counts, noise, 1)
            rows.append(counts)
            ys.append(c)
    vocabulary = [f"cls{t // terms_per_class}term{t % terms_per_class}" for t in range(n_terms)]
    return Corpus(sp.csr_matrix(np.array(rows)), np.array(ys), vocabulary,
                  [f"class{c}" for c in range(n_classes)])


@pytest.fixture
def corpus():
    return synthetic_corpus()


@pytest.fixture
def small_cfg(tmp_path):
    cfg = OmegaConf.create(DEFAULT_CONFIG)
    cfg.outdir = str(tmp_path / "results")
    cfg.search.iterations = 1
    cfg.search.pop_size = 4
    cfg.search.batch_size = 4
    cfg.search.n_topics_max = 6
    cfg.lda.max_iter = 5
    cfg.lda.batch_size = 32
    cfg.classifier.n_estimators = 10
    cfg.classifier.n_jobs = 1
    cfg.coherence.top_n = 5
    return cfg


@pytest.fixture(autouse=True)
def _empty_eval_cache():
    clear_cache()
    yield
    clear_cache()
