"""
Figures and the HTML report comparing the tuned topic models.

`results` throughout maps a model name ('lda', 'lsa') to its run record as
built by `topic_tuning.run.run_model`: the optimizer result (observations,
frontier, history, hypervolume, ...) plus `test` (held-out evaluations of
frontier configurations) and `summary`.
"""

import os
import html
import datetime
import tempfile
from string import Template
from typing import Dict, List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from topic_tuning.utils import ensure_dir, format_params


MODEL_COLORS = {"lda": "tab:blue", "lsa": "tab:orange"}


def _color(model: str) -> str:
    return MODEL_COLORS.get(model, "tab:gray")


def _save(fig, path: str):
    """Save a figure in both PNG and SVG formats."""
    ensure_dir(os.path.dirname(path))
    base_path = os.path.splitext(path)[0]
    fig.savefig(f"{base_path}.png", dpi=150, bbox_inches='tight')
    fig.savefig(f"{base_path}.svg", format='svg', bbox_inches='tight')
    plt.close(fig)


# ==================== VISUALIZATION ====================

def plot_pareto(results: Dict[str, Dict], path: str):
    """
    Scatter every observation and draw each model's Pareto frontier as a step line.

    Args:
        results: Per-model run records
        path: Output path (.png; an .svg is written alongside)
    """
    fig, ax = plt.subplots(figsize=(8, 6))
    for model, record in results.items():
        ok = [o for o in record["observations"] if not o.get("failed")]
        ax.scatter(
            [o["coherence"] for o in ok], [o["accuracy"] for o in ok],
            s=18, alpha=0.35, color=_color(model), label=f"{model.upper()} observations"
        )
        front = sorted(record["frontier"], key=lambda o: o["coherence"])
        if front:
            ax.step(
                [o["coherence"] for o in front], [o["accuracy"] for o in front],
                where="post", linewidth=2, marker="o", color=_color(model),
                label=f"{model.upper()} frontier"
            )
    ax.set_xlabel("Probabilistic coherence")
    ax.set_ylabel("Validation accuracy")
    ax.set_title("Pareto frontier: coherence vs. accuracy")
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()
    _save(fig, path)


def plot_history(results: Dict[str, Dict], path: str):
    """Frontier hypervolume vs. iteration for each model."""
    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    for model, record in results.items():
        history = record["history"]
        iterations = [h["iter"] for h in history]
        axes[0].plot(iterations, [h["hypervolume"] for h in history], marker="o",
                     linewidth=2, color=_color(model), label=model.upper())
        axes[1].plot([h["cum_time"] for h in history], [h["hypervolume"] for h in history],
                     marker="o", linewidth=2, color=_color(model), label=model.upper())

    axes[0].set_xlabel("Iteration")
    axes[0].set_title("Hypervolume vs Iteration")
    axes[1].set_xlabel("Time (s)")
    axes[1].set_title("Hypervolume vs Time")
    for ax in axes:
        ax.set_ylabel("Hypervolume")
        ax.grid(True, alpha=0.3)
        ax.legend()
    fig.tight_layout()
    _save(fig, path)


def plot_parameter(results: Dict[str, Dict], param: str, path: str):
    """Both objectives against one parameter shared by the models (e.g. n_topics)."""
    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    for model, record in results.items():
        ok = [o for o in record["observations"]
              if not o.get("failed") and param in o.get("params", {})]
        xs = [o["params"][param] for o in ok]
        axes[0].scatter(xs, [o["coherence"] for o in ok], s=18, alpha=0.6,
                        color=_color(model), label=model.upper())
        axes[1].scatter(xs, [o["accuracy"] for o in ok], s=18, alpha=0.6,
                        color=_color(model), label=model.upper())

    axes[0].set_ylabel("Probabilistic coherence")
    axes[1].set_ylabel("Validation accuracy")
    for ax in axes:
        ax.set_xlabel(param)
        ax.grid(True, alpha=0.3)
        ax.legend()
    fig.suptitle(f"Objectives vs {param}")
    fig.tight_layout()
    _save(fig, path)


def make_figures(results: Dict[str, Dict], outdir: str) -> List[str]:
    """Write the standard figures; returns their PNG file names relative to `outdir`."""
    figures = ["pareto.png", "hypervolume.png", "n_topics.png"]
    plot_pareto(results, os.path.join(outdir, figures[0]))
    plot_history(results, os.path.join(outdir, figures[1]))
    plot_parameter(results, "n_topics", os.path.join(outdir, figures[2]))
    return figures


# ==================== HTML REPORT ====================

PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
body { font-family: sans-serif; max-width: 1100px; margin: 2em auto; color: #222; }
table { border-collapse: collapse; margin: 1em 0; }
th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: right; }
th { background: #f3f3f3; }
td.text { text-align: left; }
img { max-width: 100%; }
.date { color: #666; }
</style>
</head>
<body>
<h1>$title</h1>
<p class="date">Generated $generated</p>
<h2>Summary</h2>
$summary
$frontiers
<h2>Figures</h2>
$figures
</body>
</html>
""")


def _fmt(value) -> str:
    if isinstance(value, float):
        return f"{value:.4f}"
    return str(value)


def _table(headers: List[str], rows: List[List], text_columns=()) -> str:
    head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    body = []
    for row in rows:
        cells = []
        for i, value in enumerate(row):
            css = ' class="text"' if i in text_columns else ""
            cells.append(f"<td{css}>{html.escape(_fmt(value))}</td>")
        body.append("<tr>" + "".join(cells) + "</tr>")
    return f"<table>\n<tr>{head}</tr>\n" + "\n".join(body) + "\n</table>"


def _summary_table(results: Dict[str, Dict]) -> str:
    rows = []
    for model, record in results.items():
        s = record["summary"]
        rows.append([
            model.upper(), s["algorithm"], s["total_evaluations"], s["failed_evaluations"],
            s["best_coherence"], s["best_accuracy"], s["frontier_size"], s["hypervolume"],
            s["total_time"],
        ])
    return _table(
        ["Model", "Algorithm", "Evaluations", "Failed", "Best coherence",
         "Best accuracy", "Frontier size", "Hypervolume", "Time (s)"],
        rows, text_columns=(0, 1)
    )


def _frontier_section(model: str, record: Dict) -> str:
    tested = {tuple(sorted(t["params"].items())): t for t in record.get("test", [])}
    rows = []
    for o in record["frontier"]:
        t = tested.get(tuple(sorted(o["params"].items())))
        rows.append([
            format_params(o["params"]), o["coherence"], o["accuracy"],
            t["test_accuracy"] if t else "",
            " ".join(t["top_terms"][0]) if t and t["top_terms"] else "",
        ])
    table = _table(
        ["Parameters", "Coherence", "Validation accuracy", "Test accuracy", "Top terms (topic 0)"],
        rows, text_columns=(0, 4)
    )
    return f"<h2>{html.escape(model.upper())} Pareto frontier</h2>\n{table}"


def render_report(
    results: Dict[str, Dict],
    outdir: str,
    title: str = "Topic model tuning: LDA vs LSA",
    generated_at: Optional[datetime.datetime] = None,
    figures: Optional[List[str]] = None
) -> str:
    """
    Render the HTML report.

    The page is written to a temporary file and renamed into place, so a
    failed render never leaves a partial report.

    Args:
        results: Per-model run records
        outdir: Output directory
        title: Page title
        generated_at: Generation timestamp (defaults to now)
        figures: Figure file names relative to `outdir`

    Returns:
        Path of report.html
    """
    ensure_dir(outdir)
    generated_at = generated_at or datetime.datetime.now()

    page = PAGE.substitute(
        title=html.escape(title),
        generated=html.escape(generated_at.strftime("%Y-%m-%d %H:%M")),
        summary=_summary_table(results),
        frontiers="\n".join(_frontier_section(m, r) for m, r in results.items()),
        figures="\n".join(
            f'<p><img src="{html.escape(f)}" alt="{html.escape(f)}"></p>' for f in (figures or [])
        ),
    )

    path = os.path.join(outdir, "report.html")
    fd, tmp_path = tempfile.mkstemp(dir=outdir, prefix=".report-", suffix=".html")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(page)
        # mkstemp creates the file owner-only
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path
