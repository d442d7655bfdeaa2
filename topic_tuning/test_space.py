"""Tests for search spaces and their unit-cube encoding."""

import math

import numpy as np
import pytest

from topic_tuning.space import (
    CategoricalParameter,
    FloatParameter,
    IntParameter,
    SearchSpace,
    get_space,
    LDA_SPACE,
    LSA_SPACE,
)


def test_int_parameter_bounds_and_rounding():
    p = IntParameter("n_topics", 2, 100)
    assert p.decode(0.0) == 2
    assert p.decode(1.0) == 100
    assert p.decode(-3.0) == 2
    assert p.decode(7.0) == 100
    assert isinstance(p.decode(0.33), int)
    for value in (2, 17, 50, 100):
        assert p.decode(p.encode(value)) == value


def test_float_parameter_log_scale():
    p = FloatParameter("alpha", 0.001, 10.0, log=True)
    assert p.decode(0.0) == pytest.approx(0.001)
    assert p.decode(1.0) == pytest.approx(10.0)
    assert p.decode(0.5) == pytest.approx(math.sqrt(0.001 * 10.0))
    assert p.decode(p.encode(0.25)) == pytest.approx(0.25)


def test_log_scale_requires_positive_low():
    with pytest.raises(ValueError):
        FloatParameter("bad", 0.0, 1.0, log=True)


def test_categorical_bins():
    p = CategoricalParameter("weighting", ["tf", "tfidf"])
    assert p.decode(0.0) == "tf"
    assert p.decode(0.49) == "tf"
    assert p.decode(0.5) == "tfidf"
    assert p.decode(1.0) == "tfidf"
    assert p.decode(p.encode("tf")) == "tf"
    with pytest.raises(ValueError):
        p.encode("bm25")


def test_space_decode_encode_roundtrip_lsa():
    params = {"n_topics": 12, "weighting": "tfidf", "sublinear_tf": True, "normalize": False}
    assert LSA_SPACE.decode(LSA_SPACE.encode(params)) == params


def test_space_rejects_wrong_length():
    with pytest.raises(ValueError):
        LDA_SPACE.decode([0.5])


def test_latin_hypercube_one_point_per_stratum():
    rng = np.random.default_rng(3)
    n = 8
    samples = np.array(LDA_SPACE.latin_hypercube(n, rng))
    assert samples.shape == (n, LDA_SPACE.dim)
    for d in range(LDA_SPACE.dim):
        assert sorted(np.floor(samples[:, d] * n).astype(int)) == list(range(n))


def test_get_space_overrides_topic_bounds():
    space = get_space("LDA", (3, 7))
    values = {space.decode([u, 0.5, 0.5, 0.5])["n_topics"] for u in np.linspace(0, 1, 21)}
    assert min(values) == 3 and max(values) == 7
    assert space.names == LDA_SPACE.names
    with pytest.raises(ValueError):
        get_space("nmf")


def test_duplicate_names_rejected():
    with pytest.raises(ValueError):
        SearchSpace([IntParameter("k", 1, 2), IntParameter("k", 1, 3)])
