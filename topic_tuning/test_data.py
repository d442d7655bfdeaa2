"""Tests for corpus loading and the four-way split."""

import csv

import numpy as np
import pytest
import scipy.sparse as sp

from topic_tuning.config import SPLITS
from topic_tuning.data import Corpus, load_bow_corpus, load_text_corpus, make_corpus, split_corpus
from topic_tuning.conftest import synthetic_texts


def test_split_is_disjoint_and_covers_corpus(corpus):
    splits = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=1)
    all_indices = np.concatenate([splits.indices[name] for name in SPLITS])
    assert len(all_indices) == corpus.n_documents
    assert len(np.unique(all_indices)) == corpus.n_documents


def test_split_sizes_follow_fractions(corpus):
    splits = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=1)
    n = corpus.n_documents
    for name, fraction in zip(SPLITS, (0.4, 0.2, 0.2, 0.2)):
        assert abs(splits.sizes()[name] - fraction * n) <= 1


def test_split_is_stratified(corpus):
    splits = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=1)
    for name in SPLITS:
        assert set(np.unique(splits[name].y)) == {0, 1, 2}


def test_split_rows_match_source(corpus):
    splits = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=1)
    idx = splits.indices["validation"]
    assert (splits.validation.X != corpus.X[idx]).nnz == 0
    np.testing.assert_array_equal(splits.validation.y, corpus.y[idx])


def test_split_is_deterministic(corpus):
    a = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=7)
    b = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=7)
    for name in SPLITS:
        np.testing.assert_array_equal(a.indices[name], b.indices[name])


def test_split_falls_back_when_classes_are_tiny():
    X = sp.csr_matrix(np.eye(6))
    corpus = Corpus(X, np.array([0, 0, 0, 0, 0, 1]))
    splits = split_corpus(corpus, (0.4, 0.2, 0.2, 0.2), seed=0)
    assert sum(splits.sizes().values()) == 6


def test_split_rejects_bad_fractions(corpus):
    with pytest.raises(ValueError):
        split_corpus(corpus, (0.5, 0.5, 0.0, 0.0))
    with pytest.raises(ValueError):
        split_corpus(corpus, (0.5, 0.5))


def test_corpus_label_mismatch():
    with pytest.raises(ValueError):
        Corpus(sp.csr_matrix(np.ones((3, 2))), np.array([0, 1]))


def test_make_corpus_drops_empty_documents():
    texts = ["apple banana", "", "banana cherry", "apple cherry"]
    corpus = make_corpus(texts, ["a", "b", "a", "b"], min_df=1, max_df=1.0, stop_words=None)
    assert corpus.n_documents == 3
    assert corpus.vocabulary == ["apple", "banana", "cherry"]
    assert corpus.label_names == ["a", "b"]
    np.testing.assert_array_equal(corpus.y, [0, 0, 1])


def test_load_text_corpus(tmp_path):
    texts, labels = synthetic_texts(n_per_class=5)
    path = tmp_path / "corpus.csv"
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["body", "topic"])
        writer.writerows(zip(texts, labels))

    corpus = load_text_corpus(str(path), text_column="body", label_column="topic", min_df=1)
    assert corpus.n_documents == 15
    assert len(corpus.label_names) == 3

    with pytest.raises(ValueError):
        load_text_corpus(str(path), text_column="missing", label_column="topic")


def test_load_bow_corpus(tmp_path, corpus):
    sp.save_npz(tmp_path / "X.npz", corpus.X)
    np.save(tmp_path / "y.npy", corpus.y)
    (tmp_path / "vocab.txt").write_text("\n".join(corpus.vocabulary) + "\n")

    loaded = load_bow_corpus(str(tmp_path / "X.npz"), str(tmp_path / "y.npy"), str(tmp_path / "vocab.txt"))
    assert loaded.X.shape == corpus.X.shape
    assert loaded.vocabulary == corpus.vocabulary
    assert loaded.term(0) == corpus.vocabulary[0]

    with pytest.raises(FileNotFoundError):
        load_bow_corpus(str(tmp_path / "missing.npz"), str(tmp_path / "y.npy"))
