"""
Random search baseline for topic model hyperparameters.

The first batch is a Latin hypercube sample for even coverage; later batches
are drawn uniformly from the unit cube.
"""

import time
from typing import Optional, List, Dict

from tensorboardX import SummaryWriter

from topic_tuning.utils import BaseOptimizer, ensure_dir


class RandomSearchOptimizer(BaseOptimizer):
    """Batch random search with the shared frontier bookkeeping and early stopping."""

    name = "RANDOM"

    def __init__(
        self,
        obj,
        eval_func,
        space,
        seed=42,
        early_stop_eps_pct=0.001,
        max_no_improvement=3,
        logger=None,
        **kwargs
    ):
        super().__init__(
            obj=obj,
            eval_func=eval_func,
            space=space,
            seed=seed,
            early_stop_eps_pct=early_stop_eps_pct,
            max_no_improvement=max_no_improvement,
            logger=logger,
            **kwargs
        )
        self.logger.info(f"Random search initialized over {space.names}")

    def _propose(self, iteration: int, batch_size: int, initial_points: List) -> List[List[float]]:
        if iteration == 0:
            points = [self.as_vector(p) for p in initial_points][:batch_size]
            return points + self.space.latin_hypercube(batch_size - len(points), self.rng)
        return self.rng.random((batch_size, self.space.dim)).tolist()

    def run(
        self,
        iterations: int = 10,
        batch_size: int = 8,
        writer: Optional[SummaryWriter] = None,
        outdir: Optional[str] = None,
        initial_population: Optional[List] = None
    ) -> Dict:
        """
        Run random search.

        Args:
            iterations: Number of batches
            batch_size: Configurations per batch
            writer: TensorBoard writer
            outdir: Output directory
            initial_population: Optional points placed in the first batch

        Returns:
            Optimization results dictionary
        """
        self.logger.info("=" * 80)
        self.logger.info("Starting random search")
        self.logger.info(f"Batches: {iterations}, Batch size: {batch_size}")
        self.logger.info("=" * 80)

        if outdir:
            ensure_dir(outdir)

        history = []
        t0 = time.perf_counter()
        initial_points = list(initial_population or [])

        for iteration in range(iterations):
            iter_start = time.perf_counter()

            for vector in self._propose(iteration, int(batch_size), initial_points):
                self.evaluate(vector)

            step_time = time.perf_counter() - iter_start
            cum_time = time.perf_counter() - t0
            relative_change = self.update_early_stopping(self.hypervolume())
            row = self.history_row(iteration, step_time, cum_time, relative_change)
            history.append(row)

            self.log_iteration(iteration, iterations, row)
            self.write_scalars(writer, iteration, row)

            if outdir:
                self.save_observations(outdir)

            if self.should_stop():
                self.logger.info(
                    f"Early stopping: |delta hypervolume|/prev <= {self.early_stop_eps_pct * 100:.2f}% "
                    f"for {self.max_no_improvement} batches"
                )
                break

        total_time = time.perf_counter() - t0
        result = self.build_result(history, total_time)

        self.logger.info("=" * 80)
        self.logger.info("Random Search Complete!")
        self.logger.info(f"Total time: {total_time:.2f}s")
        self.logger.info(f"Total evaluations: {result['total_evaluations']}")
        self.logger.info(f"Frontier size: {len(result['frontier'])}, hypervolume: {result['hypervolume']:.4f}")
        self.logger.info("=" * 80)

        return result
