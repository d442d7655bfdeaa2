"""Tests for scoring configurations with real (small) topic models."""

import numpy as np
import pytest

from topic_tuning.data import split_corpus
from topic_tuning.evaluation import (
    EVAL_CACHE,
    evaluate_configuration,
    evaluate_on_test,
    make_eval_func,
    make_objective,
)
from topic_tuning.models import LDAModel, LSAModel, build_model


LDA_PARAMS = {"n_topics": 3, "doc_topic_prior": 0.1, "topic_word_prior": 0.05, "learning_decay": 0.7}
LSA_PARAMS = {"n_topics": 3, "weighting": "tfidf", "sublinear_tf": False, "normalize": True}


@pytest.fixture
def splits(corpus):
    return split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=0)


def test_lda_model_shapes(corpus):
    model = LDAModel(LDA_PARAMS, seed=0, max_iter=5, batch_size=32).fit(corpus.X)
    theta = model.transform(corpus.X)
    assert theta.shape == (corpus.n_documents, 3)
    np.testing.assert_allclose(theta.sum(axis=1), 1.0, rtol=1e-6)
    np.testing.assert_allclose(model.topic_term_matrix().sum(axis=1), 1.0, rtol=1e-6)
    assert [len(t) for t in model.top_terms(5)] == [5, 5, 5]


def test_lsa_caps_topics_at_rank_limit(corpus):
    small = corpus.subset(np.arange(5))
    model = LSAModel({"n_topics": 50, "weighting": "tf"}, seed=0).fit(small.X)
    assert model.n_topics == 4
    assert model.transform(small.X).shape == (5, 4)


def test_lsa_top_terms_follow_largest_loadings(corpus):
    model = LSAModel(LSA_PARAMS, seed=0).fit(corpus.X)
    weights = model.topic_term_matrix()
    for row, top in zip(weights, model.top_terms(4)):
        assert row[top[0]] == row.max()


def test_build_model_rejects_unknown():
    with pytest.raises(ValueError):
        build_model("nmf", {"n_topics": 3})


def test_unfitted_model_raises():
    with pytest.raises(RuntimeError):
        LSAModel(LSA_PARAMS).transform(None)


@pytest.mark.parametrize("model_name, params", [("lda", LDA_PARAMS), ("lsa", LSA_PARAMS)])
def test_evaluate_configuration(model_name, params, splits, small_cfg):
    obs = evaluate_configuration(model_name, params, splits, small_cfg)
    assert not obs["failed"]
    assert -1.0 <= obs["coherence"] <= 1.0
    assert 0.0 <= obs["accuracy"] <= 1.0
    assert obs["n_topics_fitted"] == 3
    assert obs["params"] == params


def test_separable_corpus_gives_high_accuracy(splits, small_cfg):
    obs = evaluate_configuration("lsa", LSA_PARAMS, splits, small_cfg)
    assert obs["accuracy"] > 0.8
    assert obs["coherence"] > 0.0


def test_results_are_cached(splits, small_cfg):
    first = evaluate_configuration("lsa", LSA_PARAMS, splits, small_cfg)
    second = evaluate_configuration("lsa", dict(LSA_PARAMS), splits, small_cfg)
    assert first is second
    assert len(EVAL_CACHE) == 1


def test_cache_misses_when_settings_change(splits, small_cfg):
    first = evaluate_configuration("lsa", LSA_PARAMS, splits, small_cfg)
    small_cfg.coherence.top_n = 2
    second = evaluate_configuration("lsa", LSA_PARAMS, splits, small_cfg)
    small_cfg.classifier.n_estimators = 1
    third = evaluate_configuration("lsa", LSA_PARAMS, splits, small_cfg)
    assert first is not second and second is not third
    assert len(EVAL_CACHE) == 3


def test_failure_is_recorded_not_raised(splits, small_cfg):
    params = dict(LSA_PARAMS, weighting="bm25")
    obs = evaluate_configuration("lsa", params, splits, small_cfg)
    assert obs["failed"]
    assert obs["coherence"] == -1.0
    assert obs["accuracy"] == 0.0
    assert "bm25" in obs["error"]


def test_objective_and_eval_func_agree(splits, small_cfg):
    obj = make_objective("lsa", splits, small_cfg)
    eval_func = make_eval_func("lsa", splits, small_cfg)
    coherence, accuracy = obj(LSA_PARAMS)
    obs = eval_func(LSA_PARAMS)
    assert (coherence, accuracy) == (obs["coherence"], obs["accuracy"])


def test_evaluate_on_test(splits, small_cfg):
    res = evaluate_on_test("lsa", LSA_PARAMS, splits, small_cfg)
    assert 0.0 <= res["test_accuracy"] <= 1.0
    assert len(res["top_terms"]) == 3
    assert all(len(terms) == small_cfg.coherence.top_n for terms in res["top_terms"])
    assert res["top_terms"][0][0].startswith("cls")
