"""Tests for coherence metrics on hand-built document-term matrices."""

import numpy as np
import pytest
import scipy.sparse as sp

from topic_tuning.coherence import probabilistic_coherence, topic_coherences, umass_coherence


@pytest.fixture
def dtm():
    # terms 0 and 1 always co-occur, term 2 never with them, term 3 never occurs
    return sp.csr_matrix(np.array([
        [3, 1, 0, 0],
        [1, 2, 0, 0],
        [0, 0, 1, 0],
        [0, 0, 4, 0],
    ]))


def test_topic_coherences(dtm):
    scores = topic_coherences([[0, 1], [0, 2]], dtm, top_n=2)
    # P(w1|w0) - P(w1) = 1 - 0.5 ; P(w2|w0) - P(w2) = 0 - 0.5
    assert scores == pytest.approx([0.5, -0.5])


def test_probabilistic_coherence_mean(dtm):
    assert probabilistic_coherence([[0, 1], [0, 2]], dtm, top_n=2) == pytest.approx(0.0)


def test_absent_term_contributes_zero(dtm):
    assert topic_coherences([[0, 3]], dtm, top_n=2) == pytest.approx([0.0])


def test_top_n_truncates(dtm):
    assert topic_coherences([[0, 1, 2]], dtm, top_n=2) == pytest.approx([0.5])


def test_coherence_in_range():
    rng = np.random.default_rng(1)
    X = sp.csr_matrix(rng.integers(0, 3, size=(40, 15)))
    topics = [rng.permutation(15)[:6] for _ in range(5)]
    scores = topic_coherences(topics, X, top_n=6)
    assert np.all(scores >= -1.0) and np.all(scores <= 1.0)


def test_umass_of_always_cooccurring_terms_is_zero(dtm):
    assert umass_coherence([[0, 1]], dtm, top_n=2) == pytest.approx(0.0, abs=1e-6)


def test_umass_penalizes_terms_that_never_cooccur(dtm):
    assert umass_coherence([[0, 2]], dtm, top_n=2) < umass_coherence([[0, 1]], dtm, top_n=2) - 10


def test_umass_skips_topics_without_two_present_terms(dtm):
    assert umass_coherence([[0, 3]], dtm, top_n=2) == 0.0


def test_empty_corpus_rejected():
    with pytest.raises(ValueError):
        probabilistic_coherence([[0, 1]], sp.csr_matrix((0, 2)), top_n=2)
