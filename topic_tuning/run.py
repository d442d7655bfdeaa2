"""
Topic model hyperparameter tuning: LDA vs LSA.

For each model this script searches hyperparameters that jointly maximize
topic coherence and the validation accuracy of a downstream random forest,
keeps the Pareto frontier, re-evaluates frontier configurations on a held-out
test split, and renders an HTML report comparing the models.

Usage:
    python -m topic_tuning.run --data corpus.csv --text-column text --label-column label
    python -m topic_tuning.run --data X.npz --labels y.npy --vocab vocab.txt --models lda
    python -m topic_tuning.run --data corpus.csv --set search.iterations=20 search.pop_size=12
"""

import os
import logging
import argparse
from typing import Dict, List, Optional

from tensorboardX import SummaryWriter

from topic_tuning.config import load_config, config_to_dict
from topic_tuning.data import Corpus, load_bow_corpus, load_text_corpus, split_corpus
from topic_tuning.evaluation import make_objective, make_eval_func, evaluate_on_test
from topic_tuning.optimizers import get_optimizer
from topic_tuning.report import make_figures, render_report
from topic_tuning.space import get_space
from topic_tuning.utils import (
    setup_logger,
    ensure_dir,
    write_history_csv,
    save_json,
    flatten_observation,
    format_params,
    timing_decorator
)


def summarize(model_name: str, result: Dict) -> Dict:
    """Flat per-model summary for summary.json and the report."""
    ok = [o for o in result["observations"] if not o.get("failed")]
    best_coherence = max(ok, key=lambda o: o["coherence"]) if ok else None
    best_accuracy = max(ok, key=lambda o: o["accuracy"]) if ok else None
    return {
        "model": model_name,
        "algorithm": result["algorithm"],
        "total_evaluations": result["total_evaluations"],
        "failed_evaluations": result["total_evaluations"] - len(ok),
        "best_coherence": best_coherence["coherence"] if ok else float("nan"),
        "best_coherence_params": best_coherence["params"] if ok else {},
        "best_accuracy": best_accuracy["accuracy"] if ok else float("nan"),
        "best_accuracy_params": best_accuracy["params"] if ok else {},
        "frontier_size": len(result["frontier"]),
        "hypervolume": result["hypervolume"],
        "total_time": result["total_time"],
        "avg_step_time": result["avg_step_time"],
        "stopped_early": result["stopped_early"],
        "num_iterations": len(result["history"]),
    }


def run_model(
    model_name: str,
    splits,
    cfg,
    algorithm: str,
    outdir: str,
    initial_population: Optional[List] = None
) -> Dict:
    """
    Tune a single topic model.

    Args:
        model_name: 'lda' or 'lsa'
        splits: Four-way corpus split
        cfg: Experiment config
        algorithm: 'nsga2' or 'random'
        outdir: Output directory for this model
        initial_population: Optional initial points (param dicts)

    Returns:
        Run record: optimizer result plus `test` and `summary`
    """
    ensure_dir(outdir)
    log_file = os.path.join(outdir, f"{model_name}_optimization.log")
    logger = setup_logger(f"{model_name}_opt", log_file=log_file)

    search = cfg.search
    space = get_space(model_name, (search.n_topics_min, search.n_topics_max))

    logger.info("=" * 80)
    logger.info(f"{model_name.upper()} Optimization Starting ({algorithm})")
    logger.info("=" * 80)
    logger.info(f"Search space: {space}")
    logger.info(f"Iterations: {search.iterations}")
    logger.info(f"Output directory: {outdir}")
    logger.info("=" * 80)

    obj = make_objective(model_name, splits, cfg, logger=logger)
    eval_func = make_eval_func(model_name, splits, cfg, logger=logger)

    optimizer_kwargs = {}
    if algorithm == "nsga2":
        optimizer_kwargs = {
            "cxpb": float(search.cxpb),
            "eta_crossover": float(search.eta_crossover),
            "eta_mutation": float(search.eta_mutation),
        }

    optimizer_class = get_optimizer(algorithm)
    optimizer = optimizer_class(
        obj=obj,
        eval_func=eval_func,
        space=space,
        seed=int(cfg.seed),
        early_stop_eps_pct=float(search.early_stop_eps_pct),
        max_no_improvement=int(search.max_no_improvement),
        logger=logger,
        **optimizer_kwargs
    )

    writer = SummaryWriter(log_dir=os.path.join(outdir, "tensorboard"))
    try:
        if algorithm == "nsga2":
            result = optimizer.run(
                iterations=int(search.iterations),
                pop_size=int(search.pop_size),
                writer=writer,
                outdir=outdir,
                initial_population=initial_population
            )
        else:
            result = optimizer.run(
                iterations=int(search.iterations),
                batch_size=int(search.batch_size),
                writer=writer,
                outdir=outdir,
                initial_population=initial_population
            )
    finally:
        writer.close()

    # Held-out evaluation of the frontier
    test = []
    if cfg.report.frontier_on_test:
        for obs in result["frontier"]:
            if obs.get("failed"):
                continue
            try:
                test.append(evaluate_on_test(model_name, obs["params"], splits, cfg, logger=logger))
            except Exception as ex:
                logger.warning(f"Test evaluation failed for {format_params(obs['params'])}: {ex}")

    result["test"] = test
    result["summary"] = summarize(model_name, result)

    # Save results
    write_history_csv(result["history"], os.path.join(outdir, "history.csv"))
    write_history_csv([flatten_observation(o) for o in result["observations"]],
                      os.path.join(outdir, "observations.csv"))
    write_history_csv(frontier_rows(result), os.path.join(outdir, "frontier.csv"))
    save_json(result["summary"], os.path.join(outdir, "summary.json"))

    s = result["summary"]
    logger.info("=" * 80)
    logger.info(f"{model_name.upper()} Optimization Complete!")
    logger.info(f"Best coherence: {s['best_coherence']:.4f} ({format_params(s['best_coherence_params'])})")
    logger.info(f"Best accuracy: {s['best_accuracy']:.4f} ({format_params(s['best_accuracy_params'])})")
    logger.info(f"Frontier size: {s['frontier_size']}, hypervolume: {s['hypervolume']:.4f}")
    logger.info(f"Total time: {s['total_time']:.2f}s")
    logger.info("=" * 80)

    return result


def frontier_rows(result: Dict) -> List[Dict]:
    """Frontier observations joined with their held-out test accuracy."""
    tested = {tuple(sorted(t["params"].items())): t for t in result.get("test", [])}
    rows = []
    for obs in result["frontier"]:
        row = flatten_observation(obs)
        t = tested.get(tuple(sorted(obs["params"].items())))
        row["test_accuracy"] = t["test_accuracy"] if t else ""
        rows.append(row)
    return rows


@timing_decorator
def run_experiment(
    cfg,
    corpus: Corpus,
    models: Optional[List[str]] = None,
    algorithm: Optional[str] = None,
    outdir: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    write_report: Optional[bool] = None
) -> Dict:
    """
    Split the corpus, tune every model, and write the comparison artefacts.

    Args:
        cfg: Experiment config
        corpus: Labelled corpus
        models: Models to tune (defaults to cfg.search.models)
        algorithm: Search algorithm (defaults to cfg.search.algorithm)
        outdir: Output directory (defaults to cfg.outdir)
        logger: Logger instance
        write_report: Render report.html (defaults to cfg.report.enabled)

    Returns:
        Dictionary mapping model name to its run record
    """
    logger = logger or logging.getLogger("main")
    models = [m.lower() for m in (models or list(cfg.search.models))]
    algorithm = (algorithm or cfg.search.algorithm).lower()
    outdir = outdir or cfg.outdir
    write_report = cfg.report.enabled if write_report is None else write_report

    ensure_dir(outdir)
    save_json(config_to_dict(cfg), os.path.join(outdir, "config.json"))

    splits = split_corpus(corpus, list(cfg.data.fractions), seed=int(cfg.seed))
    logger.info(f"Split sizes: {splits.sizes()}")

    results = {}
    for model_name in models:
        logger.info("\n" + "=" * 80)
        logger.info(f"Tuning {model_name.upper()}")
        logger.info("=" * 80)
        results[model_name] = run_model(
            model_name, splits, cfg, algorithm, os.path.join(outdir, model_name)
        )

    # Print summary
    logger.info("\n" + "=" * 80)
    logger.info("OPTIMIZATION SUMMARY")
    logger.info("=" * 80)
    logger.info(f"{'Model':<8} {'Best coherence':<16} {'Best accuracy':<16} {'Frontier':<10} {'HV':<10} {'Time (s)':<10}")
    logger.info("-" * 80)
    for model_name, record in results.items():
        s = record["summary"]
        logger.info(
            f"{model_name.upper():<8} {s['best_coherence']:<16.4f} {s['best_accuracy']:<16.4f} "
            f"{s['frontier_size']:<10} {s['hypervolume']:<10.4f} {s['total_time']:<10.2f}"
        )
    logger.info("=" * 80)

    # Save overall summary
    overall_summary = {
        "algorithm": algorithm,
        "splits": splits.sizes(),
        "results": [record["summary"] for record in results.values()],
        "best_hypervolume_model": max(results, key=lambda m: results[m]["summary"]["hypervolume"]) if results else None,
    }
    save_json(overall_summary, os.path.join(outdir, "overall_summary.json"))

    if results:
        logger.info("Generating figures...")
        figures = make_figures(results, outdir)
        if write_report:
            path = render_report(results, outdir, title=cfg.report.title, figures=figures)
            logger.info(f"Report written to {path}")

    logger.info(f"All results saved to: {outdir}")
    return results


def load_corpus_from_args(args, cfg) -> Corpus:
    if args.data.endswith(".npz"):
        if not args.labels:
            raise ValueError("--labels is required with a .npz document-term matrix")
        return load_bow_corpus(args.data, args.labels, args.vocab)
    return load_text_corpus(
        args.data,
        text_column=args.text_column,
        label_column=args.label_column,
        min_df=cfg.data.min_df,
        max_df=cfg.data.max_df,
        max_features=cfg.data.max_features,
        stop_words=cfg.data.stop_words
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description='Topic model hyperparameter tuning: LDA vs LSA')
    parser.add_argument('--data', type=str, required=True,
                        help='Corpus: .npz document-term matrix or .csv of raw text')
    parser.add_argument('--labels', type=str, default=None,
                        help='Labels for a .npz matrix (.npy or one label per line)')
    parser.add_argument('--vocab', type=str, default=None,
                        help='Vocabulary for a .npz matrix (one term per line)')
    parser.add_argument('--text-column', type=str, default='text',
                        help='CSV column holding document text')
    parser.add_argument('--label-column', type=str, default='label',
                        help='CSV column holding the class label')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML/JSON config merged over the defaults')
    parser.add_argument('--set', type=str, nargs='*', default=[], metavar='KEY=VALUE',
                        help='Config overrides, e.g. search.iterations=20')
    parser.add_argument('--models', type=str, nargs='+', default=None,
                        choices=['lda', 'lsa'], help='Models to tune')
    parser.add_argument('--algorithm', type=str, default=None,
                        choices=['nsga2', 'random'], help='Search algorithm')
    parser.add_argument('--iterations', type=int, default=None,
                        help='Generations (nsga2) or batches (random)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--outdir', type=str, default=None, help='Output directory')
    parser.add_argument('--no-report', action='store_true', help='Skip report.html')

    args = parser.parse_args(argv)

    overrides = list(args.set)
    if args.models:
        overrides.append(f"search.models=[{','.join(args.models)}]")
    if args.algorithm:
        overrides.append(f"search.algorithm={args.algorithm}")
    if args.iterations is not None:
        overrides.append(f"search.iterations={args.iterations}")
    if args.seed is not None:
        overrides.append(f"seed={args.seed}")
    if args.outdir:
        overrides.append(f"outdir={args.outdir}")
    if args.no_report:
        overrides.append("report.enabled=false")
    cfg = load_config(args.config, overrides)

    # Setup main logger
    ensure_dir(cfg.outdir)
    logger = setup_logger('main', log_file=os.path.join(cfg.outdir, 'main.log'))

    logger.info("=" * 80)
    logger.info("Topic Model Hyperparameter Tuning")
    logger.info("=" * 80)
    logger.info(f"Data: {args.data}")
    logger.info(f"Models: {list(cfg.search.models)}")
    logger.info(f"Algorithm: {cfg.search.algorithm}")
    logger.info(f"Iterations: {cfg.search.iterations}")
    logger.info(f"Seed: {cfg.seed}")
    logger.info(f"Output directory: {cfg.outdir}")
    logger.info("=" * 80)

    corpus = load_corpus_from_args(args, cfg)
    logger.info(f"Loaded: {corpus.n_documents} documents, {corpus.n_terms} vocabulary, "
                f"{len(corpus.label_names)} labels")

    run_experiment(cfg, corpus, logger=logger)


if __name__ == '__main__':
    main()
