"""
Corpus loading and the four-way document split.

The split separates the documents used to fit topic models from those used to
train and validate the downstream classifier, plus a held-out test part that
is only touched when re-evaluating Pareto-optimal configurations.
"""

import csv
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.model_selection import train_test_split

from topic_tuning.config import SPLITS


logger = logging.getLogger(__name__)


@dataclass
class Corpus:
    """Bag-of-words corpus with one class label per document."""
    X: sp.csr_matrix
    y: np.ndarray
    vocabulary: List[str] = field(default_factory=list)
    label_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.X = sp.csr_matrix(self.X)
        self.y = np.asarray(self.y)
        if self.X.shape[0] != self.y.shape[0]:
            raise ValueError(
                f"Corpus has {self.X.shape[0]} documents but {self.y.shape[0]} labels"
            )
        if self.vocabulary and len(self.vocabulary) != self.X.shape[1]:
            raise ValueError(
                f"Vocabulary has {len(self.vocabulary)} terms but matrix has {self.X.shape[1]} columns"
            )

    @property
    def n_documents(self) -> int:
        return self.X.shape[0]

    @property
    def n_terms(self) -> int:
        return self.X.shape[1]

    def term(self, index: int) -> str:
        if self.vocabulary:
            return self.vocabulary[index]
        return f"w{index}"

    def subset(self, indices: np.ndarray) -> "Corpus":
        return Corpus(self.X[indices], self.y[indices], self.vocabulary, self.label_names)


@dataclass
class CorpusSplits:
    """The four disjoint parts of a corpus plus the row indices each came from."""
    topic: Corpus
    train: Corpus
    validation: Corpus
    test: Corpus
    indices: Dict[str, np.ndarray]

    def __getitem__(self, name: str) -> Corpus:
        if name not in SPLITS:
            raise KeyError(name)
        return getattr(self, name)

    def sizes(self) -> Dict[str, int]:
        return {name: self[name].n_documents for name in SPLITS}


# ==================== DATA LOADING ====================

def _load_labels(labels_path: str) -> np.ndarray:
    if labels_path.endswith(".npy"):
        return np.load(labels_path, allow_pickle=False)
    with open(labels_path, "r") as f:
        return np.array([line.strip() for line in f if line.strip()])


def _encode_labels(labels: Sequence) -> Tuple[np.ndarray, List[str]]:
    names, y = np.unique(np.asarray(labels).astype(str), return_inverse=True)
    return y.astype(int), [str(n) for n in names]


def load_bow_corpus(matrix_path: str, labels_path: str, vocab_path: Optional[str] = None) -> Corpus:
    """
    Load a bag-of-words corpus.

    Args:
        matrix_path: Sparse document-term matrix (.npz)
        labels_path: Labels, .npy array or text file with one label per line
        vocab_path: Optional text file with one term per line

    Returns:
        Corpus
    """
    for path in (matrix_path, labels_path, vocab_path):
        if path and not os.path.exists(path):
            raise FileNotFoundError(f"File not found: {path}")

    X = sp.load_npz(matrix_path).tocsr(copy=False)
    y, label_names = _encode_labels(_load_labels(labels_path))

    vocabulary = []
    if vocab_path:
        with open(vocab_path, "r", encoding="utf-8") as f:
            vocabulary = [line.rstrip("\n") for line in f if line.strip()]

    logger.info(f"Loaded: {X.shape[0]} documents, {X.shape[1]} vocabulary, {len(label_names)} labels")
    return Corpus(X, y, vocabulary, label_names)


def make_corpus(
    texts: Sequence[str],
    labels: Sequence,
    min_df=2,
    max_df=0.95,
    max_features: Optional[int] = 5000,
    stop_words: Optional[str] = "english"
) -> Corpus:
    """
    Vectorize raw texts into a Corpus.

    Documents with no remaining terms after vectorization are dropped.
    """
    if len(texts) != len(labels):
        raise ValueError(f"Got {len(texts)} texts but {len(labels)} labels")

    vectorizer = CountVectorizer(
        min_df=min_df,
        max_df=max_df,
        max_features=max_features,
        stop_words=stop_words
    )
    X = vectorizer.fit_transform(texts).tocsr()

    keep = np.asarray(X.sum(axis=1)).ravel() > 0
    dropped = int((~keep).sum())
    if dropped:
        logger.warning(f"Dropping {dropped} documents that are empty after vectorization")
    y, label_names = _encode_labels(np.asarray(labels)[keep])

    vocabulary = vectorizer.get_feature_names_out().tolist()
    logger.info(f"Vectorized: {int(keep.sum())} documents, {len(vocabulary)} vocabulary")
    return Corpus(X[keep], y, vocabulary, label_names)


def load_text_corpus(
    csv_path: str,
    text_column: str = "text",
    label_column: str = "label",
    **vectorizer_opts
) -> Corpus:
    """
    Load a CSV with one document per row and vectorize it.

    Args:
        csv_path: CSV file path
        text_column: Column holding document text
        label_column: Column holding the class label
        **vectorizer_opts: Passed through to make_corpus

    Returns:
        Corpus
    """
    if not os.path.exists(csv_path):
        raise FileNotFoundError(f"File not found: {csv_path}")

    texts, labels = [], []
    with open(csv_path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        columns = reader.fieldnames or []
        for column in (text_column, label_column):
            if column not in columns:
                raise ValueError(f"Column '{column}' not in {csv_path} (columns: {columns})")
        for row in reader:
            texts.append(row[text_column] or "")
            labels.append(row[label_column])

    logger.info(f"Read {len(texts)} rows from {csv_path}")
    return make_corpus(texts, labels, **vectorizer_opts)


# ==================== SPLITTING ====================

def _split_off(indices: np.ndarray, y: np.ndarray, size: int, seed: int):
    """Split `size` items off `indices`, stratified by label when possible."""
    strata = y[indices]
    try:
        rest, part = train_test_split(indices, test_size=size, random_state=seed, stratify=strata)
    except ValueError as ex:
        logger.warning(f"Falling back to unstratified split: {ex}")
        rest, part = train_test_split(indices, test_size=size, random_state=seed)
    return rest, part


def split_corpus(corpus: Corpus, fractions: Sequence[float] = (0.4, 0.2, 0.2, 0.2), seed: int = 42) -> CorpusSplits:
    """
    Split a corpus into topic / train / validation / test parts.

    Args:
        corpus: Corpus to split
        fractions: Share of documents per part, in SPLITS order
        seed: Random seed

    Returns:
        CorpusSplits whose parts are disjoint and cover every document
    """
    fractions = [float(f) for f in fractions]
    if len(fractions) != len(SPLITS) or any(f <= 0 for f in fractions):
        raise ValueError(f"Need {len(SPLITS)} positive fractions, got {fractions}")
    total = sum(fractions)
    fractions = [f / total for f in fractions]

    n = corpus.n_documents
    if n < len(SPLITS):
        raise ValueError(f"Need at least {len(SPLITS)} documents to split, got {n}")

    # Round part sizes, keep each at least 1, give the remainder to the first part
    sizes = [max(1, int(round(f * n))) for f in fractions[1:]]
    sizes.insert(0, n - sum(sizes))
    if sizes[0] < 1:
        raise ValueError(f"Corpus of {n} documents is too small for fractions {fractions}")

    remaining = np.arange(n)
    indices = {}
    for name, size in reversed(list(zip(SPLITS[1:], sizes[1:]))):
        remaining, part = _split_off(remaining, corpus.y, size, seed)
        indices[name] = np.sort(part)
    indices["topic"] = np.sort(remaining)

    splits = CorpusSplits(
        topic=corpus.subset(indices["topic"]),
        train=corpus.subset(indices["train"]),
        validation=corpus.subset(indices["validation"]),
        test=corpus.subset(indices["test"]),
        indices={name: indices[name] for name in SPLITS},
    )
    logger.info(f"Split sizes: {splits.sizes()}")
    return splits
