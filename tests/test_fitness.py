"""
Tests for candidate scoring.
"""

from concurrent.futures import ThreadPoolExecutor
import numpy as np
import pytest
from GA import (
    REJECTED_FITNESS,
    FitnessAlgorithm,
    FitnessEvaluator,
    InputMismatchError,
    PopulationEngine,
    RandomStreamFactory,
    Triangle
)

DEGENERATE = Triangle(vertices=((2, 2), (2, 2), (6, 7)), color=(255, 0, 0))
RED_HALF = Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(255, 0, 0))


class TestDegeneracyFilter:

    @pytest.mark.parametrize('threshold', [0.01, 1.0, 10.0])
    def test_coincident_vertices_rejected(self, red_reference, threshold):
        evaluator = FitnessEvaluator(red_reference, degeneracy_threshold=threshold)
        canvas = np.zeros_like(red_reference)

        assert FitnessEvaluator.is_degenerate(DEGENERATE, threshold)
        assert evaluator.score(DEGENERATE, canvas) == REJECTED_FITNESS

    @pytest.mark.parametrize('threshold', [None, 0, -5])
    def test_disabled_threshold_scores_normally(self, red_reference, threshold):
        evaluator = FitnessEvaluator(red_reference, degeneracy_threshold=threshold)
        canvas = np.zeros_like(red_reference)

        assert evaluator.score(DEGENERATE, canvas) > REJECTED_FITNESS

    def test_regular_triangle_accepted(self, red_reference):
        evaluator = FitnessEvaluator(red_reference, degeneracy_threshold=5)
        assert evaluator.score(RED_HALF, np.zeros_like(red_reference)) > REJECTED_FITNESS


class TestScore:

    def test_mse_fitness_is_negated_error(self, red_reference):
        evaluator = FitnessEvaluator(red_reference, FitnessAlgorithm.MSE)
        black = np.zeros_like(red_reference)

        assert evaluator.evaluate(black) == pytest.approx(-(255 ** 2) / 3)
        assert evaluator.evaluate(red_reference) == 0

    def test_matching_triangle_improves_fitness(self, red_reference):
        evaluator = FitnessEvaluator(red_reference, FitnessAlgorithm.MSE)
        black = np.zeros_like(red_reference)

        assert evaluator.score(RED_HALF, black) > evaluator.evaluate(black)

    def test_score_leaves_canvas_untouched(self, red_reference):
        evaluator = FitnessEvaluator(red_reference)
        canvas = np.zeros_like(red_reference)

        evaluator.score(RED_HALF, canvas)

        assert not canvas.any()

    def test_ssim_fitness(self, red_reference):
        evaluator = FitnessEvaluator(red_reference, 'ssim')
        black = np.zeros_like(red_reference)

        assert evaluator.evaluate(red_reference) == pytest.approx(1.0)
        assert evaluator.score(RED_HALF, black) > evaluator.evaluate(black)

    def test_delta_e_fitness(self, red_reference):
        evaluator = FitnessEvaluator(red_reference, FitnessAlgorithm.DELTA_E)
        black = np.zeros_like(red_reference)

        assert evaluator.evaluate(red_reference) == pytest.approx(0, abs=1e-9)
        assert evaluator.evaluate(black) < 0
        assert evaluator.score(RED_HALF, black) > evaluator.evaluate(black)

    def test_shape_mismatch_is_fatal(self, red_reference):
        evaluator = FitnessEvaluator(red_reference)

        with pytest.raises(InputMismatchError):
            evaluator.score(RED_HALF, np.zeros((9, 9, 3), dtype=np.uint8))


class TestScoreBatch:

    def test_order_matches_population(self, gradient_reference):
        population = PopulationEngine(16, 0.1).initial_population(24, RandomStreamFactory(1))
        canvas = np.zeros_like(gradient_reference)

        with ThreadPoolExecutor(max_workers=4) as executor:
            evaluator = FitnessEvaluator(gradient_reference, executor=executor)
            scores = evaluator.score_batch(population, canvas)

        assert scores == [evaluator.score(t, canvas) for t in population]

    def test_serial_without_executor(self, gradient_reference):
        population = PopulationEngine(16, 0.1).initial_population(5, RandomStreamFactory(2))
        evaluator = FitnessEvaluator(gradient_reference, 'ssim')

        assert len(evaluator.score_batch(population, np.zeros_like(gradient_reference))) == 5
