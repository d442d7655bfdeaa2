"""End-to-end runs on a tiny corpus, plus report rendering."""

import csv
import datetime
import os
import stat

import pytest

from topic_tuning.conftest import synthetic_texts
from topic_tuning.report import render_report
from topic_tuning.run import main, run_experiment
from topic_tuning.utils import load_json


def _record(model, frontier, test=()):
    return {
        "observations": list(frontier),
        "frontier": list(frontier),
        "history": [{"iter": -1, "hypervolume": 0.1, "cum_time": 0.0}],
        "test": list(test),
        "summary": {
            "algorithm": "NSGA2", "total_evaluations": len(frontier), "failed_evaluations": 0,
            "best_coherence": 0.2, "best_accuracy": 0.9, "frontier_size": len(frontier),
            "hypervolume": 0.5, "total_time": 1.0,
        },
    }


def test_render_report_stamps_date_and_escapes(tmp_path):
    frontier = [{"params": {"n_topics": 5, "weighting": "<b>tf</b>"}, "coherence": 0.2, "accuracy": 0.9}]
    test = [{"params": frontier[0]["params"], "test_accuracy": 0.85, "top_terms": [["alpha", "beta"]]}]
    results = {"lsa": _record("lsa", frontier, test)}

    path = render_report(results, str(tmp_path), title="A & B",
                         generated_at=datetime.datetime(2024, 5, 6, 7, 8))
    page = open(path, encoding="utf-8").read()

    assert "Generated 2024-05-06 07:08" in page
    assert "<title>A &amp; B</title>" in page
    assert "&lt;b&gt;tf&lt;/b&gt;" in page
    assert "0.8500" in page
    assert "alpha beta" in page
    assert not [f for f in os.listdir(tmp_path) if f.startswith(".report-")]
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o644


def test_failed_render_leaves_no_report(tmp_path, monkeypatch):
    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("topic_tuning.report.os.replace", failing_replace)
    with pytest.raises(OSError, match="disk full"):
        render_report({"lsa": _record("lsa", [])}, str(tmp_path))
    assert os.listdir(tmp_path) == []


def test_run_experiment_writes_artefacts(corpus, small_cfg):
    results = run_experiment(small_cfg, corpus)

    outdir = small_cfg.outdir
    assert set(results) == {"lda", "lsa"}
    for model in ("lda", "lsa"):
        for name in ("observations.csv", "history.csv", "frontier.csv", "summary.json"):
            assert os.path.exists(os.path.join(outdir, model, name))
        assert os.path.isdir(os.path.join(outdir, model, "tensorboard"))
        assert results[model]["frontier"]
        assert len(results[model]["test"]) == len(results[model]["frontier"])

    for name in ("overall_summary.json", "config.json", "pareto.png", "hypervolume.png", "report.html"):
        assert os.path.exists(os.path.join(outdir, name))

    summary = load_json(os.path.join(outdir, "overall_summary.json"))
    assert summary["algorithm"] == "nsga2"
    assert sum(summary["splits"].values()) == corpus.n_documents
    assert summary["best_hypervolume_model"] in ("lda", "lsa")


def test_run_experiment_random_single_model(corpus, small_cfg):
    small_cfg.report.enabled = False
    results = run_experiment(small_cfg, corpus, models=["lsa"], algorithm="random")
    assert list(results) == ["lsa"]
    assert results["lsa"]["algorithm"] == "RANDOM"
    assert results["lsa"]["total_evaluations"] == small_cfg.search.batch_size
    assert not os.path.exists(os.path.join(small_cfg.outdir, "report.html"))


def test_cli_on_csv_corpus(tmp_path):
    texts, labels = synthetic_texts(n_per_class=12)
    data = tmp_path / "corpus.csv"
    with open(data, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["text", "label"])
        writer.writerows(zip(texts, labels))

    outdir = tmp_path / "out"
    main([
        "--data", str(data),
        "--models", "lsa",
        "--algorithm", "random",
        "--iterations", "1",
        "--outdir", str(outdir),
        "--set", "search.batch_size=3", "search.n_topics_max=5",
        "classifier.n_estimators=5", "data.min_df=1",
    ])

    assert os.path.exists(outdir / "report.html")
    assert os.path.exists(outdir / "main.log")
    config = load_json(str(outdir / "config.json"))
    assert config["search"]["models"] == ["lsa"]


def test_cli_requires_labels_for_matrix(tmp_path):
    with pytest.raises(ValueError):
        main(["--data", str(tmp_path / "X.npz"), "--outdir", str(tmp_path / "out")])


def test_report_module_selects_headless_backend():
    import matplotlib
    import topic_tuning.report  # noqa: F401

    assert matplotlib.get_backend().lower() == "agg"
