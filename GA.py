from __future__ import annotations
import os
import time
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Union
import numpy as np
from tqdm import tqdm
from utils import (
    draw_triangle,
    is_degenerate,
    mean_delta_e,
    mean_squared_error,
    per_pixel_ssim,
    rgb_to_lab
)
from config import (
    BACKGROUND_COLOR,
    COLOR_JITTER,
    GA_PARAMS,
    GENE_PROBABILITY,
    OPACITY_JITTER,
    VERTEX_JITTER_FRACTION
)

logger = logging.getLogger(__name__)

# Fitness given to rejected (degenerate) candidates. Any real score beats it.
REJECTED_FITNESS = float(np.finfo(np.float64).min)


class ConfigurationError(ValueError):
    """Invalid algorithm parameters."""


class InputMismatchError(ValueError):
    """Reference image and canvas dimensions differ."""


class FitnessAlgorithm(Enum):
    MSE = 'mse'
    SSIM = 'ssim'
    DELTA_E = 'delta_e'


class RunStatus(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class Triangle:
    """A colored triangle with integer vertices and an optional opacity in [0, 1]."""
    vertices: tuple[tuple[int, int], tuple[int, int], tuple[int, int]]
    color: tuple[int, int, int]
    opacity: Optional[float] = None


@dataclass(frozen=True)
class AlgorithmParams:
    """
    Parameters of a triangle evolution run.

    Parameters
    ----------
    num_triangles : int
        Number of triangles placed on the canvas, one evolutionary search per triangle.
    image_size : int
        Side of the square canvas in pixels.
    num_generations : int
        Number of generations of each triangle's search.
    population_size : int
        Number of candidate triangles in every generation.
    num_selected : int
        Number of best candidates kept as parents of the next generation.
    mutation_rate : float
        Probability that a child triangle is mutated at all.
    degeneracy_threshold : float, optional
        Candidates with an interior angle at most this many degrees are rejected. Disabled when None or <= 0.
    seed : int, optional
        Seed of the run. Derived from the wall clock when None.
    fitness_algorithm : FitnessAlgorithm or str
        Image similarity used as fitness.
    use_opacity : bool
        Evolve alpha-blended triangles with an opacity gene.
    max_workers : int, optional
        Size of the worker pool. Defaults to the number of CPUs.
    """
    num_triangles: int
    image_size: int
    num_generations: int
    population_size: int
    num_selected: int
    mutation_rate: float
    degeneracy_threshold: Optional[float] = None
    seed: Optional[int] = None
    fitness_algorithm: FitnessAlgorithm = FitnessAlgorithm.MSE
    use_opacity: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, 'fitness_algorithm', FitnessAlgorithm(self.fitness_algorithm))
        except ValueError:
            raise ConfigurationError(f'Unknown fitness algorithm: {self.fitness_algorithm!r}') from None

    def validate(self) -> AlgorithmParams:
        """Check the parameters and return them unchanged."""
        for name in ('image_size', 'population_size', 'num_selected'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f'{name} must be positive, got {getattr(self, name)}.')

        for name in ('num_triangles', 'num_generations'):
            if getattr(self, name) < 0:
                raise ConfigurationError(f'{name} cannot be negative, got {getattr(self, name)}.')

        if self.num_selected > self.population_size:
            raise ConfigurationError(
                f'num_selected ({self.num_selected}) cannot exceed population_size ({self.population_size}).')

        if not 0 <= self.mutation_rate <= 1:
            raise ConfigurationError(f'mutation_rate must be in [0, 1], got {self.mutation_rate}.')

        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigurationError(f'max_workers must be positive, got {self.max_workers}.')

        if self.seed is not None and self.seed < 0:
            raise ConfigurationError(f'seed cannot be negative, got {self.seed}.')

        return self


def default_params(**overrides) -> AlgorithmParams:
    """Get fully populated algorithm parameters, optionally overriding some of the defaults."""
    unknown = set(overrides) - set(GA_PARAMS)
    if unknown:
        raise ConfigurationError(f'Unknown parameters: {", ".join(sorted(unknown))}.')

    return AlgorithmParams(**{**GA_PARAMS, **overrides})


class RandomStreamFactory:
    """
    Source of independent random streams derived from a single run seed.

    Sub-seeds are children spawned from the run seed's `np.random.SeedSequence` in a fixed order on the
    control thread, one per unit of parallel work, so identical seeds and call orders reproduce identical
    runs whatever the thread scheduling.

    Parameters
    ----------
    seed : int, optional
        Run seed. Defaults to the current time in seconds.
    """

    def __init__(self, seed: int = None):
        self.seed = int(time.time()) if seed is None else seed
        self._root = np.random.SeedSequence(self.seed)

    def spawn_seeds(self, n: int) -> list[np.random.SeedSequence]:
        """Spawn the next `n` sub-seeds."""
        return self._root.spawn(n)

    @staticmethod
    def generator(seed: Union[int, np.random.SeedSequence]) -> np.random.Generator:
        """Create a generator owned by a single unit of work."""
        return np.random.default_rng(seed)


class FitnessEvaluator:
    """
    Scores candidate triangles against the reference image.

    Parameters
    ----------
    reference : np.ndarray
        Reference image, uint8 of shape (size, size, 3).
    algorithm : FitnessAlgorithm or str
        Image similarity used as fitness. Higher is always better.
    degeneracy_threshold : float, optional
        Candidates with an interior angle at most this many degrees get REJECTED_FITNESS.
    executor : Executor, optional
        Worker pool for batch scoring. Batches are scored serially without it.
    """

    def __init__(
            self,
            reference: np.ndarray,
            algorithm: FitnessAlgorithm = FitnessAlgorithm.MSE,
            degeneracy_threshold: float = None,
            executor: Executor = None
    ):
        self.reference = reference
        self.algorithm = FitnessAlgorithm(algorithm)
        self.degeneracy_threshold = degeneracy_threshold
        self.executor = executor

        self._reference_lab = rgb_to_lab(reference) if self.algorithm is FitnessAlgorithm.DELTA_E else None

    @staticmethod
    def is_degenerate(triangle: Triangle, threshold: float) -> bool:
        """Check if the triangle has an interior angle of at most `threshold` degrees."""
        return is_degenerate(triangle.vertices, threshold)

    def rejects(self, triangle: Triangle) -> bool:
        """Check if the triangle is excluded by the degeneracy filter."""
        if self.degeneracy_threshold is None or self.degeneracy_threshold <= 0:
            return False

        return self.is_degenerate(triangle, self.degeneracy_threshold)

    def evaluate(self, img: np.ndarray) -> float:
        """Calculate the fitness of a whole canvas."""
        if img.shape != self.reference.shape:
            raise InputMismatchError(f'Canvas shape {img.shape} differs from reference shape {self.reference.shape}.')

        if self.algorithm is FitnessAlgorithm.MSE:
            return -mean_squared_error(img, self.reference)

        elif self.algorithm is FitnessAlgorithm.SSIM:
            return per_pixel_ssim(img, self.reference)

        else:
            return -mean_delta_e(self._reference_lab, img)

    def score(self, triangle: Triangle, canvas: np.ndarray) -> float:
        """Calculate the fitness of the canvas with the triangle drawn on it."""
        if self.rejects(triangle):
            return REJECTED_FITNESS

        fitness = self.evaluate(draw_triangle(canvas, triangle))
        if not np.isfinite(fitness):
            logger.warning('Non-finite fitness %s for %s, rejecting it', fitness, triangle)
            return REJECTED_FITNESS

        return fitness

    def score_batch(self, population: list[Triangle], canvas: np.ndarray) -> list[float]:
        """Score every individual of a population, keeping the population order."""
        def score_one(triangle: Triangle) -> float:
            return self.score(triangle, canvas)

        if self.executor is None:
            return [score_one(triangle) for triangle in population]

        return list(self.executor.map(score_one, population))


class PopulationEngine:
    """
    Creates populations of triangles and breeds new generations from selected parents.

    Parameters
    ----------
    image_size : int
        Side of the square canvas.
    mutation_rate : float
        Probability that a child is mutated.
    use_opacity : bool
        Create triangles with an opacity gene.
    executor : Executor, optional
        Worker pool for population construction. Runs serially without it.
    """

    def __init__(
            self,
            image_size: int,
            mutation_rate: float,
            use_opacity: bool = False,
            executor: Executor = None
    ):
        self.image_size = image_size
        self.mutation_rate = mutation_rate
        self.use_opacity = use_opacity
        self.executor = executor

    def _map(self, func: Callable, items: list) -> list:
        if self.executor is None:
            return [func(item) for item in items]

        return list(self.executor.map(func, items))

    def random_triangle(self, rng: np.random.Generator) -> Triangle:
        """Sample a triangle with uniformly distributed vertices and color."""
        coords = [int(c) for c in rng.integers(0, self.image_size, size=6)]
        vertices = ((coords[0], coords[1]), (coords[2], coords[3]), (coords[4], coords[5]))
        color = tuple(int(c) for c in rng.integers(0, 256, size=3))
        opacity = float(rng.random()) if self.use_opacity else None

        return Triangle(vertices=vertices, color=color, opacity=opacity)

    def initial_population(self, size: int, streams: RandomStreamFactory) -> list[Triangle]:
        """Create `size` random triangles, each from its own sub-seed."""
        return self._map(lambda seed: self.random_triangle(streams.generator(seed)), streams.spawn_seeds(size))

    @staticmethod
    def select(population: list[Triangle], scores: list[float], k: int) -> list[Triangle]:
        """Keep the `k` fittest individuals. Ties keep their population order."""
        if len(population) != len(scores):
            raise ValueError(f'Got {len(scores)} scores for {len(population)} individuals.')

        order = np.argsort(-np.asarray(scores, dtype=np.float64), kind='stable')
        return [population[i] for i in order[:k]]

    @staticmethod
    def crossover(parent_1: Triangle, parent_2: Triangle, rng: np.random.Generator) -> Triangle:
        """Uniform crossover: every vertex, color channel and the opacity come from either parent."""
        vertices = tuple(v1 if rng.random() < GENE_PROBABILITY else v2
                         for v1, v2 in zip(parent_1.vertices, parent_2.vertices))
        color = tuple(c1 if rng.random() < GENE_PROBABILITY else c2
                      for c1, c2 in zip(parent_1.color, parent_2.color))

        opacity = parent_1.opacity
        if parent_1.opacity is not None and parent_2.opacity is not None:
            opacity = parent_1.opacity if rng.random() < GENE_PROBABILITY else parent_2.opacity

        return Triangle(vertices=vertices, color=color, opacity=opacity)

    @staticmethod
    def mutate(triangle: Triangle, image_size: int, mutation_rate: float, rng: np.random.Generator) -> Triangle:
        """
        Mutate a triangle with probability `mutation_rate`.

        A mutated triangle gets each vertex shifted with probability 0.5 by up to 10% of the canvas side
        per axis (then clamped to the canvas), each color channel shifted with probability 0.5 by up to 10,
        and its opacity shifted with probability 0.5 by up to 0.1.
        """
        if rng.random() >= mutation_rate:
            return triangle

        max_shift = int(image_size * VERTEX_JITTER_FRACTION)
        vertices = []
        for x, y in triangle.vertices:
            if rng.random() < GENE_PROBABILITY:
                x = int(np.clip(x + rng.integers(-max_shift, max_shift, endpoint=True), 0, image_size - 1))
                y = int(np.clip(y + rng.integers(-max_shift, max_shift, endpoint=True), 0, image_size - 1))
            vertices.append((x, y))

        color = []
        for c in triangle.color:
            if rng.random() < GENE_PROBABILITY:
                c = int(np.clip(c + rng.integers(-COLOR_JITTER, COLOR_JITTER, endpoint=True), 0, 255))
            color.append(c)

        opacity = triangle.opacity
        if opacity is not None and rng.random() < GENE_PROBABILITY:
            opacity = float(np.clip(opacity + rng.uniform(-OPACITY_JITTER, OPACITY_JITTER), 0, 1))

        return Triangle(vertices=tuple(vertices), color=tuple(color), opacity=opacity)

    def reproduce(self, parents: list[Triangle], seed: Union[int, np.random.SeedSequence]) -> Triangle:
        """Breed one child from two random parents (drawn with replacement)."""
        rng = RandomStreamFactory.generator(seed)
        parent_1 = parents[rng.integers(len(parents))]
        parent_2 = parents[rng.integers(len(parents))]
        child = self.crossover(parent_1, parent_2, rng)

        return self.mutate(child, self.image_size, self.mutation_rate, rng)

    def next_generation(self, parents: list[Triangle], size: int, streams: RandomStreamFactory) -> list[Triangle]:
        """Breed a new population of `size` children, each from its own sub-seed."""
        return self._map(lambda seed: self.reproduce(parents, seed), streams.spawn_seeds(size))


@dataclass(frozen=True)
class BackgroundRecord:
    width: int
    height: int
    color: tuple[int, int, int] = BACKGROUND_COLOR


@dataclass(frozen=True)
class PolygonRecord:
    points: tuple[tuple[int, int], ...]
    color: tuple[int, int, int]
    opacity: Optional[float] = None


class VectorDocument:
    """Append-only vector counterpart of the canvas: a background rectangle followed by committed polygons."""

    def __init__(self, image_size: int, background: tuple[int, int, int] = BACKGROUND_COLOR):
        self.image_size = image_size
        self.background = BackgroundRecord(image_size, image_size, background)
        self.polygons: list[PolygonRecord] = []

    def __len__(self) -> int:
        return len(self.polygons) + 1

    @property
    def records(self) -> list:
        return [self.background, *self.polygons]

    def append(self, triangle: Triangle) -> None:
        self.polygons.append(PolygonRecord(points=triangle.vertices, color=triangle.color, opacity=triangle.opacity))

    def copy(self) -> VectorDocument:
        document = VectorDocument(self.image_size, self.background.color)
        document.polygons = list(self.polygons)
        return document

    def to_svg(self) -> str:
        """Render the document as SVG markup."""
        size = self.image_size
        r, g, b = self.background.color
        lines = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" '
            f'viewBox="0 0 {size} {size}" overflow="hidden">',
            f'  <rect x="0" y="0" width="{size}" height="{size}" fill="rgb({r},{g},{b})"/>'
        ]

        for polygon in self.polygons:
            points_str = ' '.join(f'{x},{y}' for x, y in polygon.points)
            r, g, b = polygon.color
            opacity_attr = '' if polygon.opacity is None else f' fill-opacity="{polygon.opacity:.4f}"'
            lines.append(f'  <polygon points="{points_str}" fill="rgb({r},{g},{b})"{opacity_attr}/>')

        lines.append('</svg>')
        return '\n'.join(lines) + '\n'


@dataclass(frozen=True)
class ProgressSnapshot:
    """Copy of the optimizer's progress at one point in time."""
    status: RunStatus = RunStatus.IDLE
    triangle_index: int = 0
    generation_index: int = 0
    is_running: bool = False
    is_complete: bool = False
    current_fitness: float = REJECTED_FITNESS
    should_stop: bool = False
    n_committed: int = 0
    seed: Optional[int] = None
    current_generation: tuple[Triangle, ...] = ()


@dataclass
class RunResult:
    canvas: np.ndarray
    document: VectorDocument
    triangles: list[Triangle]
    fitness_history: list[float]
    img_history: list[tuple[int, np.ndarray]] = field(default_factory=list)
    seed: Optional[int] = None
    cancelled: bool = False


class TriangleOptimizer:
    """
    Places triangles one at a time, each chosen by a genetic algorithm.

    The search runs on a single control thread; scoring and breeding of every generation are
    parallel maps over a worker pool. Progress, canvas and document are published as copies,
    so they can be read from other threads while the run goes on.

    Parameters
    ----------
    params : AlgorithmParams
        Algorithm parameters, validated on construction.
    n_seconds : float, optional
        Time budget. When exceeded, no further triangle searches are started.
    save_every : int, optional
        Call the checkpoint callback after every `save_every` committed triangles.
    img_history_step : int, optional
        Keep every `img_history_step`-th canvas for the progress animation.
    verbose : bool
        Show a tqdm progress bar.
    """

    def __init__(
            self,
            params: AlgorithmParams,
            n_seconds: float = None,
            save_every: int = None,
            img_history_step: int = None,
            verbose: bool = False
    ):
        self.params = params.validate()
        for name, value in (('n_seconds', n_seconds), ('save_every', save_every),
                            ('img_history_step', img_history_step)):
            if value is not None and value <= 0:
                raise ConfigurationError(f'{name} must be positive, got {value}.')

        self.n_seconds = n_seconds
        self.save_every = save_every
        self.img_history_step = img_history_step
        self.verbose = verbose
        self.result = None

        self._stop_event = threading.Event()
        self._progress_lock = threading.Lock()
        self._snapshot_lock = threading.Lock()
        self._progress = ProgressSnapshot()
        self._canvas = None
        self._document = None
        self._thread = None
        self._error = None

    def stop(self) -> None:
        """Request cancellation. The run stops before the next generation or triangle."""
        self._stop_event.set()

    def get_progress(self) -> ProgressSnapshot:
        with self._progress_lock:
            progress = self._progress
        return replace(progress, should_stop=self._stop_event.is_set())

    def get_canvas(self) -> Optional[np.ndarray]:
        """Get a copy of the canvas, or None if there is none yet or it is being updated."""
        if not self._snapshot_lock.acquire(blocking=False):
            return None
        try:
            return None if self._canvas is None else self._canvas.copy()
        finally:
            self._snapshot_lock.release()

    def get_document(self) -> Optional[VectorDocument]:
        """Get a copy of the vector document, or None if there is none yet or it is being updated."""
        if not self._snapshot_lock.acquire(blocking=False):
            return None
        try:
            return None if self._document is None else self._document.copy()
        finally:
            self._snapshot_lock.release()

    def _update_progress(self, **changes) -> None:
        with self._progress_lock:
            self._progress = replace(self._progress, **changes)

    def _publish(self, canvas: np.ndarray, document: VectorDocument) -> None:
        document = document.copy()
        with self._snapshot_lock:
            self._canvas = canvas
            self._document = document

    def _check_reference(self, reference: np.ndarray) -> np.ndarray:
        reference = np.asarray(reference)
        expected_shape = (self.params.image_size, self.params.image_size, 3)
        if reference.shape != expected_shape:
            raise InputMismatchError(f'Reference image has shape {reference.shape}, expected {expected_shape}.')

        return reference.astype(np.uint8, copy=False)

    def _prepare(self, reference: np.ndarray) -> np.ndarray:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError('The optimizer is already running.')

        reference = self._check_reference(reference)
        self._stop_event.clear()
        self._error = None
        self.result = None
        with self._progress_lock:
            self._progress = ProgressSnapshot(status=RunStatus.RUNNING, is_running=True)
        return reference

    def fit(
            self,
            reference: np.ndarray,
            on_generation: Callable[[ProgressSnapshot], None] = None,
            on_commit: Callable[[int, Triangle, float], None] = None,
            on_checkpoint: Callable[[VectorDocument], None] = None
    ) -> RunResult:
        """
        Run the optimizer on the calling thread.

        Parameters
        ----------
        reference : np.ndarray
            Reference image, uint8 of shape (image_size, image_size, 3).
        on_generation : callable, optional
            Called with the progress after every completed generation.
        on_commit : callable, optional
            Called with the triangle index, the committed triangle and its fitness after every commit.
        on_checkpoint : callable, optional
            Called with a copy of the document every `save_every` commits and once at the end.
        """
        reference = self._prepare(reference)
        return self._run(reference, on_generation, on_commit, on_checkpoint)

    def start(self, reference: np.ndarray, **callbacks) -> threading.Thread:
        """Run the optimizer on a background thread. Takes the same callbacks as `fit`."""
        reference = self._prepare(reference)
        self._thread = threading.Thread(
            target=self._run_in_background, args=(reference,), kwargs=callbacks, name='triangle-optimizer', daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: float = None) -> bool:
        """Wait for a background run. Return True once it is finished, re-raising its error if it failed."""
        if self._thread is None:
            return True

        self._thread.join(timeout)
        if self._thread.is_alive():
            return False

        if self._error is not None:
            raise self._error

        return True

    def _run_in_background(self, reference: np.ndarray, **callbacks) -> None:
        try:
            self._run(reference, **callbacks)
        except Exception as e:
            logger.exception('Triangle evolution failed')
            self._error = e

    def _run(
            self,
            reference: np.ndarray,
            on_generation: Callable = None,
            on_commit: Callable = None,
            on_checkpoint: Callable = None
    ) -> RunResult:
        params = self.params
        streams = RandomStreamFactory(params.seed)
        logger.info('Evolving %d triangles on a %dx%d canvas (seed %d)',
                    params.num_triangles, params.image_size, params.image_size, streams.seed)

        canvas = np.zeros((params.image_size, params.image_size, 3), dtype=np.uint8)
        document = VectorDocument(params.image_size)
        self._publish(canvas, document)
        self._update_progress(seed=streams.seed)

        triangles = []
        fitness_history = []
        img_history = []
        cancelled = False
        start_time = time.time()
        progress_bar = tqdm(desc='Triangle evolution', total=params.num_triangles, disable=not self.verbose)

        try:
            with ThreadPoolExecutor(max_workers=params.max_workers or os.cpu_count()) as executor:
                engine = PopulationEngine(params.image_size, params.mutation_rate, params.use_opacity, executor)
                evaluator = FitnessEvaluator(reference, params.fitness_algorithm, params.degeneracy_threshold, executor)

                for triangle_index in range(params.num_triangles):
                    if self._stop_event.is_set():
                        cancelled = True
                        break

                    if self.n_seconds is not None and time.time() - start_time >= self.n_seconds:
                        logger.info('Time budget of %s s exhausted after %d triangles', self.n_seconds, len(triangles))
                        break

                    self._update_progress(triangle_index=triangle_index, generation_index=0)
                    best_triangle, best_fitness, interrupted = self._evolve_triangle(
                        canvas, engine, evaluator, streams, on_generation)
                    cancelled = cancelled or interrupted

                    if best_triangle is not None:
                        canvas = draw_triangle(canvas, best_triangle)
                        document.append(best_triangle)
                        triangles.append(best_triangle)
                        fitness_history.append(best_fitness)
                        self._publish(canvas, document)
                        self._update_progress(n_committed=len(triangles))
                        logger.debug('Committed triangle %d with fitness %.4f', triangle_index, best_fitness)

                        if self.img_history_step is not None and len(triangles) % self.img_history_step == 0:
                            img_history.append((len(triangles), canvas))

                        if on_commit is not None:
                            on_commit(triangle_index, best_triangle, best_fitness)

                        if on_checkpoint is not None and self.save_every is not None \
                                and len(triangles) % self.save_every == 0:
                            on_checkpoint(document.copy())

                        progress_bar.set_postfix(fitness=f'{best_fitness:.4f}', refresh=False)

                    progress_bar.update(1)

        except BaseException:
            self._update_progress(status=RunStatus.IDLE, is_running=False)
            raise

        finally:
            progress_bar.close()
            self._stop_event.clear()

        if on_checkpoint is not None:
            on_checkpoint(document.copy())

        status = RunStatus.CANCELLED if cancelled else RunStatus.COMPLETED
        if cancelled:
            logger.info('Run cancelled after %d triangles', len(triangles))
        else:
            logger.info('Run completed with %d triangles', len(triangles))

        self.result = RunResult(
            canvas=canvas,
            document=document.copy(),
            triangles=triangles,
            fitness_history=fitness_history,
            img_history=img_history,
            seed=streams.seed,
            cancelled=cancelled
        )
        self._update_progress(status=status, is_running=False, is_complete=True)
        return self.result

    def _evolve_triangle(
            self,
            canvas: np.ndarray,
            engine: PopulationEngine,
            evaluator: FitnessEvaluator,
            streams: RandomStreamFactory,
            on_generation: Callable = None
    ) -> tuple[Optional[Triangle], float, bool]:
        """Search the best next triangle for the canvas. Return it, its fitness and whether the search was cancelled."""
        params = self.params
        population = engine.initial_population(params.population_size, streams)
        best_triangle = None
        best_fitness = REJECTED_FITNESS

        for generation_index in range(params.num_generations):
            if self._stop_event.is_set():
                return best_triangle, best_fitness, True

            self._update_progress(generation_index=generation_index)
            scores = evaluator.score_batch(population, canvas)

            # np.argmax keeps the first candidate on ties
            generation_best = int(np.argmax(scores))
            if scores[generation_best] > best_fitness:
                best_fitness = scores[generation_best]
                best_triangle = population[generation_best]
                self._update_progress(current_fitness=best_fitness)

            parents = engine.select(population, scores, params.num_selected)
            population = engine.next_generation(parents, params.population_size, streams)
            self._update_progress(current_generation=tuple(population))

            if on_generation is not None:
                on_generation(self.get_progress())

        return best_triangle, best_fitness, False
