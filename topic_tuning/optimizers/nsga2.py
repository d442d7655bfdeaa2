"""
NSGA-II optimizer for topic model hyperparameters.

This module implements a multi-objective genetic algorithm that:
- Searches the unit-cube encoding of a SearchSpace
- Maximizes coherence and downstream accuracy jointly
- Keeps the population spread along the Pareto frontier with crowding distance
"""

import time
import random
from typing import Optional, List, Dict

import numpy as np
from tensorboardX import SummaryWriter
from deap import base, creator, tools

from topic_tuning.utils import BaseOptimizer, ensure_dir


# Create DEAP fitness and individual classes (only once)
if not hasattr(creator, "FitnessTopic"):
    creator.create("FitnessTopic", base.Fitness, weights=(1.0, 1.0))
if not hasattr(creator, "TopicIndividual"):
    creator.create("TopicIndividual", list, fitness=creator.FitnessTopic)


class NSGA2Optimizer(BaseOptimizer):
    """
    NSGA-II optimizer for topic model hyperparameters.

    The NSGA-II uses:
    - Simulated binary crossover bounded to [0, 1]
    - Polynomial mutation bounded to [0, 1]
    - Dominance-and-crowding tournament for parent selection
    - Non-dominated sorting with crowding distance for survival
    - Early stopping on relative hypervolume change
    """

    name = "NSGA2"

    def __init__(
        self,
        obj,
        eval_func,
        space,
        seed=42,
        cxpb=0.9,
        eta_crossover=15.0,
        eta_mutation=20.0,
        indpb=None,
        early_stop_eps_pct=0.001,
        max_no_improvement=3,
        logger=None,
        **kwargs
    ):
        """
        Initialize NSGA-II optimizer.

        Args:
            obj: Objective function params -> (coherence, accuracy)
            eval_func: Evaluation function params -> observation dict
            space: Search space
            seed: Random seed
            cxpb: Crossover probability
            eta_crossover: Crowding degree of the crossover (higher = children closer to parents)
            eta_mutation: Crowding degree of the mutation
            indpb: Per-gene mutation probability (default 1/d)
            early_stop_eps_pct: Early stopping threshold (relative hypervolume change)
            max_no_improvement: Generations without improvement before stopping
            logger: Logger instance
        """
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

        self.cxpb = float(cxpb)
        self.eta_crossover = float(eta_crossover)
        self.eta_mutation = float(eta_mutation)
        self.indpb = float(indpb) if indpb is not None else 1.0 / max(1, space.dim)

        # DEAP operators draw from the random module
        random.seed(self.seed)

        self.toolbox = base.Toolbox()
        self.toolbox.register("evaluate", self._evaluate)
        self.toolbox.register(
            "mate", tools.cxSimulatedBinaryBounded,
            eta=self.eta_crossover, low=0.0, up=1.0
        )
        self.toolbox.register(
            "mutate", tools.mutPolynomialBounded,
            eta=self.eta_mutation, low=0.0, up=1.0, indpb=self.indpb
        )
        self.toolbox.register("select", tools.selNSGA2)

        self.logger.info(
            f"NSGA-II initialized: cxpb={cxpb}, eta_c={eta_crossover}, "
            f"eta_m={eta_mutation}, indpb={self.indpb:.3f}"
        )

    def _evaluate(self, ind):
        """
        Evaluate individual fitness.

        Args:
            ind: Individual (unit-cube vector)

        Returns:
            Tuple (coherence, accuracy)
        """
        return self.evaluate(ind)

    @staticmethod
    def _population_size(pop_size: int) -> int:
        # selTournamentDCD needs a multiple of 4
        return max(4, int(np.ceil(pop_size / 4.0)) * 4)

    def create_initial_population(self, pop_size: int, initial_population: Optional[List] = None) -> List:
        """
        Create initial population.

        Provided points come first; the rest is filled with a Latin hypercube sample.

        Args:
            pop_size: Population size
            initial_population: Optional list of param dicts or unit-cube vectors

        Returns:
            List of individuals
        """
        points = [self.as_vector(p) for p in (initial_population or [])][:pop_size]
        if len(points) < pop_size:
            points += self.space.latin_hypercube(pop_size - len(points), self.rng)

        pop = [creator.TopicIndividual(p) for p in points]
        self.logger.info(f"Created initial population of size {len(pop)}")
        return pop

    def run(
        self,
        iterations: int = 10,
        pop_size: int = 8,
        writer: Optional[SummaryWriter] = None,
        outdir: Optional[str] = None,
        initial_population: Optional[List] = None
    ) -> Dict:
        """
        Run NSGA-II optimization.

        Args:
            iterations: Number of generations
            pop_size: Population size (rounded up to a multiple of 4)
            writer: TensorBoard writer
            outdir: Output directory
            initial_population: Optional initial points (param dicts or unit-cube vectors)

        Returns:
            Optimization results dictionary
        """
        pop_size = self._population_size(pop_size)

        self.logger.info("=" * 80)
        self.logger.info("Starting NSGA-II optimization")
        self.logger.info(f"Generations: {iterations}, Population size: {pop_size}")
        self.logger.info(f"Parameters: {self.space.names}")
        self.logger.info("=" * 80)

        pop = self.create_initial_population(pop_size, initial_population)

        history = []
        t0 = time.perf_counter()

        self.logger.info("Evaluating initial population...")
        for ind in pop:
            ind.fitness.values = self.toolbox.evaluate(ind)
        # Assigns crowding distances needed by selTournamentDCD
        pop = self.toolbox.select(pop, len(pop))

        relative_change = self.update_early_stopping(self.hypervolume())
        row = self.history_row(-1, 0.0, time.perf_counter() - t0, relative_change)
        history.append(row)
        self.logger.info(
            f"Initial: best coherence={row['best_coherence']:.4f}, "
            f"best accuracy={row['best_accuracy']:.4f}, HV={row['hypervolume']:.4f}"
        )

        if outdir:
            ensure_dir(outdir)
            self.save_observations(outdir)

        for gen in range(iterations):
            gen_start = time.perf_counter()

            # Variation
            offspring = tools.selTournamentDCD(pop, len(pop))
            offspring = [self.toolbox.clone(ind) for ind in offspring]
            for ind1, ind2 in zip(offspring[::2], offspring[1::2]):
                if random.random() <= self.cxpb:
                    self.toolbox.mate(ind1, ind2)
                self.toolbox.mutate(ind1)
                self.toolbox.mutate(ind2)
                del ind1.fitness.values, ind2.fitness.values

            # Evaluate children
            invalid = [ind for ind in offspring if not ind.fitness.valid]
            for ind in invalid:
                ind.fitness.values = self.toolbox.evaluate(ind)

            # Survivor selection over parents and children
            pop = self.toolbox.select(pop + offspring, pop_size)

            step_time = time.perf_counter() - gen_start
            cum_time = time.perf_counter() - t0
            relative_change = self.update_early_stopping(self.hypervolume())
            row = self.history_row(gen, step_time, cum_time, relative_change, evaluated=len(invalid))
            history.append(row)

            self.log_iteration(gen, iterations, row)
            self.write_scalars(writer, gen, row)

            if outdir:
                self.save_observations(outdir)

            if self.should_stop():
                self.logger.info(
                    f"Early stopping: |delta hypervolume|/prev <= {self.early_stop_eps_pct * 100:.2f}% "
                    f"for {self.max_no_improvement} generations"
                )
                break

        total_time = time.perf_counter() - t0
        result = self.build_result(history, total_time)
        result["final_population"] = [self.decode(ind) for ind in pop]

        self.logger.info("=" * 80)
        self.logger.info("NSGA-II Optimization Complete!")
        self.logger.info(f"Total time: {total_time:.2f}s")
        self.logger.info(f"Total evaluations: {result['total_evaluations']}")
        self.logger.info(f"Frontier size: {len(result['frontier'])}, hypervolume: {result['hypervolume']:.4f}")
        self.logger.info("=" * 80)

        return result
