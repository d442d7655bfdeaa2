"""
Topic model wrappers.

LDA and LSA expose the same small interface so the evaluation code can treat
them alike: fit on a document-term matrix, transform documents to topic
features, and report per-topic term weights.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np
import scipy.sparse as sp
from sklearn.decomposition import LatentDirichletAllocation, TruncatedSVD
from sklearn.feature_extraction.text import TfidfTransformer
from sklearn.preprocessing import normalize


logger = logging.getLogger(__name__)


class TopicModel(ABC):
    """Common interface of the topic models under comparison."""

    name = "base"

    def __init__(self, params: Dict, seed: int = 42):
        self.params = dict(params)
        self.seed = int(seed)
        self.n_topics = int(params["n_topics"])
        self._fitted = False

    @abstractmethod
    def fit(self, X: sp.csr_matrix) -> "TopicModel":
        pass

    @abstractmethod
    def transform(self, X: sp.csr_matrix) -> np.ndarray:
        """Document-topic features, shape (n_documents, n_topics)."""
        pass

    @abstractmethod
    def topic_term_matrix(self) -> np.ndarray:
        """Topic-term weights, shape (n_topics, n_terms)."""
        pass

    def fit_transform(self, X: sp.csr_matrix) -> np.ndarray:
        return self.fit(X).transform(X)

    def top_terms(self, n: int) -> List[np.ndarray]:
        """Indices of the `n` highest-weighted terms of each topic, best first."""
        weights = self.topic_term_matrix()
        n = min(int(n), weights.shape[1])
        return [np.argsort(-row, kind="stable")[:n] for row in weights]

    def _check_fitted(self):
        if not self._fitted:
            raise RuntimeError(f"{self.__class__.__name__} is not fitted")


class LDAModel(TopicModel):
    """Latent Dirichlet Allocation via scikit-learn's variational Bayes."""

    name = "lda"

    def __init__(
        self,
        params: Dict,
        seed: int = 42,
        max_iter: int = 20,
        batch_size: int = 256,
        learning_method: str = "online"
    ):
        super().__init__(params, seed)
        self.lda = LatentDirichletAllocation(
            n_components=self.n_topics,
            doc_topic_prior=float(params.get("doc_topic_prior", 1.0 / self.n_topics)),
            topic_word_prior=float(params.get("topic_word_prior", 1.0 / self.n_topics)),
            learning_decay=float(params.get("learning_decay", 0.7)),
            learning_method=learning_method,
            max_iter=int(max_iter),
            batch_size=int(batch_size),
            random_state=self.seed,
            evaluate_every=-1,
            n_jobs=1
        )

    def fit(self, X):
        self.lda.fit(X)
        self._fitted = True
        logger.debug(f"LDA fitted: n_topics={self.n_topics}, n_iter={getattr(self.lda, 'n_iter_', 'N/A')}")
        return self

    def transform(self, X):
        self._check_fitted()
        return self.lda.transform(X)

    def topic_term_matrix(self):
        self._check_fitted()
        components = self.lda.components_
        return components / components.sum(axis=1, keepdims=True)

    def perplexity(self, X) -> float:
        self._check_fitted()
        return float(self.lda.perplexity(X))


class LSAModel(TopicModel):
    """
    Latent Semantic Analysis: optional tf-idf weighting followed by a
    truncated SVD of the document-term matrix.

    Topic-term weights are the right singular vectors, which can be negative;
    top terms are the largest positive loadings.
    """

    name = "lsa"

    def __init__(self, params: Dict, seed: int = 42, n_iter: int = 5):
        super().__init__(params, seed)
        self.weighting = params.get("weighting", "tfidf")
        self.sublinear_tf = bool(params.get("sublinear_tf", False))
        self.normalize = bool(params.get("normalize", False))
        self.n_iter = int(n_iter)
        self.tfidf: Optional[TfidfTransformer] = None
        self.svd: Optional[TruncatedSVD] = None

    def _weight(self, X, fit: bool):
        X = sp.csr_matrix(X, dtype=np.float64)
        if self.weighting == "tfidf":
            if fit:
                self.tfidf = TfidfTransformer(sublinear_tf=self.sublinear_tf)
                return self.tfidf.fit_transform(X)
            return self.tfidf.transform(X)
        if self.weighting != "tf":
            raise ValueError(f"Unknown weighting '{self.weighting}'")
        if self.sublinear_tf:
            X = X.copy()
            X.data = 1.0 + np.log(X.data)
        return X

    def fit(self, X):
        limit = min(X.shape) - 1
        if limit < 1:
            raise ValueError(f"Cannot fit LSA on a matrix of shape {X.shape}")
        if self.n_topics > limit:
            logger.warning(f"LSA n_topics={self.n_topics} exceeds rank limit; using {limit}")
            self.n_topics = limit

        W = self._weight(X, fit=True)
        self.svd = TruncatedSVD(n_components=self.n_topics, n_iter=self.n_iter, random_state=self.seed)
        self.svd.fit(W)
        self._fitted = True
        logger.debug(
            f"LSA fitted: n_topics={self.n_topics}, "
            f"explained variance={self.svd.explained_variance_ratio_.sum():.4f}"
        )
        return self

    def transform(self, X):
        self._check_fitted()
        Z = self.svd.transform(self._weight(X, fit=False))
        if self.normalize:
            Z = normalize(Z)
        return Z

    def topic_term_matrix(self):
        self._check_fitted()
        return self.svd.components_


def build_model(model_name: str, params: Dict, cfg=None, seed: int = 42) -> TopicModel:
    """
    Instantiate a topic model from its search parameters.

    Args:
        model_name: 'lda' or 'lsa'
        params: Decoded search parameters
        cfg: Experiment config; its `lda` / `lsa` sections supply fitting settings
        seed: Random seed

    Returns:
        Unfitted TopicModel
    """
    key = model_name.lower()
    if key == "lda":
        opts = cfg.lda if cfg is not None else {}
        return LDAModel(
            params,
            seed=seed,
            max_iter=opts.get("max_iter", 20),
            batch_size=opts.get("batch_size", 256),
            learning_method=opts.get("learning_method", "online")
        )
    if key == "lsa":
        opts = cfg.lsa if cfg is not None else {}
        return LSAModel(params, seed=seed, n_iter=opts.get("n_iter", 5))
    raise ValueError(f"Unknown model '{model_name}'")
