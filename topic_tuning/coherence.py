"""
Topic coherence metrics computed from document co-occurrence counts.

Probabilistic coherence scores a topic by how much knowing that a document
contains one of the topic's top terms raises the probability that it contains
a lower-ranked one: mean over ordered pairs i < j of P(w_j | w_i) - P(w_j).
It lies in [-1, 1]; values near 0 mean the top terms co-occur no more than
chance would predict.

UMass coherence is reported alongside as a diagnostic, computed with gensim.
"""

from typing import List, Sequence

import numpy as np
import scipy.sparse as sp
from gensim.corpora import Dictionary
from gensim.matutils import Sparse2Corpus
from gensim.models.coherencemodel import CoherenceModel


def _document_frequencies(terms: np.ndarray, X: sp.csr_matrix):
    """Document counts of each term and of each term pair, from the binarized DTM."""
    sub = sp.csc_matrix(X[:, terms])
    sub.data = np.ones_like(sub.data)
    co = (sub.T @ sub).toarray()
    return np.diag(co).astype(float), co.astype(float)


def _probabilistic(terms: np.ndarray, X: sp.csr_matrix, n_docs: int) -> float:
    df, co = _document_frequencies(terms, X)
    p = df / n_docs
    scores = []
    for i in range(len(terms)):
        for j in range(i + 1, len(terms)):
            if df[i] == 0 or df[j] == 0:
                scores.append(0.0)
                continue
            scores.append(co[i, j] / df[i] - p[j])
    return float(np.mean(scores)) if scores else 0.0


def topic_coherences(top_terms: Sequence[Sequence[int]], X, top_n: int = 10) -> np.ndarray:
    """
    Probabilistic coherence of each topic.

    Args:
        top_terms: Per-topic term indices, best first
        X: Document-term matrix the coherence is measured on
        top_n: Number of leading terms per topic to score

    Returns:
        Array of shape (n_topics,)
    """
    X = sp.csr_matrix(X)
    n_docs = X.shape[0]
    if n_docs == 0:
        raise ValueError("Cannot compute coherence on an empty corpus")
    return np.array([
        _probabilistic(np.asarray(terms[:top_n], dtype=int), X, n_docs)
        for terms in top_terms
    ])


def probabilistic_coherence(top_terms: Sequence[Sequence[int]], X, top_n: int = 10) -> float:
    """Mean probabilistic coherence over topics."""
    scores = topic_coherences(top_terms, X, top_n)
    return float(np.mean(scores)) if scores.size else 0.0


def umass_coherence(top_terms: Sequence[Sequence[int]], X, top_n: int = 10) -> float:
    """
    Mean UMass coherence over topics, computed by gensim's CoherenceModel.

    Term indices become gensim tokens; terms that never occur in X are dropped
    and topics left with fewer than two terms are not scored. Returns 0.0 when
    no topic can be scored.
    """
    X = sp.csr_matrix(X)
    if X.shape[0] == 0:
        raise ValueError("Cannot compute coherence on an empty corpus")

    present = np.asarray((X > 0).sum(axis=0)).ravel() > 0
    topics: List[List[str]] = []
    for terms in top_terms:
        kept = [str(int(t)) for t in terms[:top_n] if present[int(t)]]
        if len(kept) >= 2:
            topics.append(kept)
    if not topics:
        return 0.0

    corpus = Sparse2Corpus(X, documents_columns=False)
    dictionary = Dictionary.from_corpus(corpus, id2word={i: str(i) for i in range(X.shape[1])})
    cm = CoherenceModel(
        topics=topics,
        corpus=corpus,
        dictionary=dictionary,
        coherence="u_mass",
        topn=top_n
    )
    return float(cm.get_coherence())
