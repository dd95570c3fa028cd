"""
Tests for rasterization, image metrics and triangle geometry.
"""

import numpy as np
import pytest
from GA import Triangle, VectorDocument
from utils import (
    draw_triangle,
    is_degenerate,
    mean_delta_e,
    mean_squared_error,
    per_pixel_ssim,
    resize_image,
    rgb_to_lab,
    save_document_as_svg,
    triangle_angles
)


class TestDrawTriangle:

    def test_solid_fill(self):
        """A solid triangle paints its inside and leaves the rest alone."""
        canvas = np.zeros((8, 8, 3), dtype=np.uint8)
        triangle = Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(10, 20, 30))

        out = draw_triangle(canvas, triangle)

        assert out.shape == canvas.shape
        assert out.dtype == np.uint8
        assert tuple(out[1, 1]) == (10, 20, 30)
        assert tuple(out[7, 7]) == (0, 0, 0)

    def test_input_not_modified(self):
        canvas = np.zeros((8, 8, 3), dtype=np.uint8)
        triangle = Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(255, 255, 255))

        draw_triangle(canvas, triangle)

        assert not canvas.any()

    def test_opacity_blends(self):
        """Half-transparent color over black lands around half its value."""
        canvas = np.zeros((8, 8, 3), dtype=np.uint8)
        triangle = Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(200, 100, 50), opacity=0.5)

        out = draw_triangle(canvas, triangle)

        assert 95 <= out[2, 2, 0] <= 106
        assert 45 <= out[2, 2, 1] <= 55

    def test_zero_opacity_is_invisible(self):
        canvas = np.full((8, 8, 3), 40, dtype=np.uint8)
        triangle = Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(200, 100, 50), opacity=0.0)

        assert np.array_equal(draw_triangle(canvas, triangle), canvas)

    def test_off_canvas_vertices_are_clipped(self):
        canvas = np.zeros((8, 8, 3), dtype=np.uint8)
        triangle = Triangle(vertices=((-20, -20), (30, 0), (0, 30)), color=(255, 0, 0))

        out = draw_triangle(canvas, triangle)

        assert out.shape == (8, 8, 3)
        assert tuple(out[0, 0]) == (255, 0, 0)


class TestMetrics:

    def test_mse_identical_is_zero(self, gradient_reference):
        assert mean_squared_error(gradient_reference, gradient_reference) == 0

    def test_mse_black_vs_red(self, red_reference):
        black = np.zeros_like(red_reference)
        assert mean_squared_error(black, red_reference) == pytest.approx(255 ** 2 / 3)

    def test_ssim_identical_is_one(self, gradient_reference):
        assert per_pixel_ssim(gradient_reference, gradient_reference) == pytest.approx(1.0)

    def test_ssim_prefers_closer_image(self, gradient_reference):
        black = np.zeros_like(gradient_reference)
        shifted = np.clip(gradient_reference.astype(int) + 10, 0, 255).astype(np.uint8)

        assert per_pixel_ssim(shifted, gradient_reference) > per_pixel_ssim(black, gradient_reference)

    def test_delta_e_identical_is_zero(self, gradient_reference):
        reference_lab = rgb_to_lab(gradient_reference)
        assert mean_delta_e(reference_lab, gradient_reference) == pytest.approx(0, abs=1e-9)

    def test_delta_e_positive_for_different_images(self, red_reference):
        reference_lab = rgb_to_lab(red_reference)
        assert mean_delta_e(reference_lab, np.zeros_like(red_reference)) > 0


class TestGeometry:

    def test_right_triangle_angles(self):
        angles = sorted(triangle_angles(((0, 0), (4, 0), (0, 4))))
        assert angles == pytest.approx([45, 45, 90])

    def test_angles_sum_to_180(self):
        assert sum(triangle_angles(((1, 2), (13, 5), (6, 11)))) == pytest.approx(180)

    @pytest.mark.parametrize('threshold', [1e-3, 1, 30])
    def test_coincident_vertices_are_degenerate(self, threshold):
        assert is_degenerate(((3, 3), (3, 3), (10, 1)), threshold)

    def test_collinear_vertices_are_degenerate(self):
        assert is_degenerate(((0, 0), (5, 5), (10, 10)), 0.5)

    def test_threshold_against_smallest_angle(self):
        vertices = ((0, 0), (4, 0), (0, 4))
        assert not is_degenerate(vertices, 30)
        assert is_degenerate(vertices, 50)


class TestResizeImage:

    def test_exact_size(self, gradient_reference):
        assert resize_image(gradient_reference, width=8, height=4).shape == (4, 8, 3)

    def test_keeps_aspect_ratio(self):
        img = np.zeros((10, 20, 3), dtype=np.uint8)
        assert resize_image(img, width=10).shape == (5, 10, 3)

    def test_no_size_returns_input(self, gradient_reference):
        assert resize_image(gradient_reference) is gradient_reference


class TestSvg:

    def test_document_markup(self):
        document = VectorDocument(16)
        document.append(Triangle(vertices=((0, 0), (15, 0), (0, 15)), color=(1, 2, 3)))
        document.append(Triangle(vertices=((1, 1), (2, 9), (9, 2)), color=(4, 5, 6), opacity=0.25))

        svg = document.to_svg()

        assert svg.startswith('<svg')
        assert 'viewBox="0 0 16 16"' in svg
        assert '<rect x="0" y="0" width="16" height="16" fill="rgb(0,0,0)"/>' in svg
        assert '<polygon points="0,0 15,0 0,15" fill="rgb(1,2,3)"/>' in svg
        assert 'fill="rgb(4,5,6)" fill-opacity="0.2500"' in svg
        assert svg.index('<rect') < svg.index('<polygon')

    def test_save(self, tmp_path):
        document = VectorDocument(8)
        document.append(Triangle(vertices=((0, 0), (7, 0), (0, 7)), color=(9, 9, 9)))
        path = tmp_path / 'out.svg'

        save_document_as_svg(document, str(path))

        assert path.read_text(encoding='utf-8') == document.to_svg()
