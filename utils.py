from __future__ import annotations
import cv2
import colour
import numpy as np
from PIL import Image, ImageDraw, ImageFont
from colour.difference.delta_e import delta_E_CIE1976
from config import SSIM_C1, SSIM_C2


def resize_image(
        image: np.ndarray,
        width: int = None,
        height: int = None,
        interpolation: int = cv2.INTER_AREA
) -> np.ndarray:
    """Resize an image. With one side given the aspect ratio is kept, with both the size is exact."""

    (h, w) = image.shape[:2]

    if width is None and height is None:
        return image

    if width is not None and height is not None:
        dim = (width, height)

    elif width is None:
        r = height / float(h)
        dim = (int(w * r), height)

    else:
        r = width / float(w)
        dim = (width, int(h * r))

    return cv2.resize(image, dim, interpolation=interpolation)


def load_reference_image(path: str, image_size: int) -> np.ndarray:
    """Load an image as RGB and resize it to a square of a given side."""
    img = np.array(Image.open(path).convert('RGB'))
    return resize_image(img, width=image_size, height=image_size, interpolation=cv2.INTER_LANCZOS4)


def draw_triangle(img: np.ndarray, triangle) -> np.ndarray:
    """
    Draw a triangle onto a copy of an RGB image.

    Triangles carrying an opacity are alpha-blended over the image, the others are drawn solid.
    Vertices outside the image are clipped by the rasterizer. The input array is never modified.
    """
    canvas = Image.fromarray(img)
    vertices = [(int(x), int(y)) for x, y in triangle.vertices]

    if triangle.opacity is None:
        ImageDraw.Draw(canvas).polygon(vertices, fill=tuple(triangle.color))

    else:
        alpha = int(round(triangle.opacity * 255))
        ImageDraw.Draw(canvas, 'RGBA').polygon(vertices, fill=(*triangle.color, alpha))

    return np.array(canvas)


def mean_squared_error(img_1: np.ndarray, img_2: np.ndarray) -> float:
    """Mean squared per-channel difference of two images."""
    diff = img_1.astype(np.float64) - img_2.astype(np.float64)
    return float(np.mean(diff * diff))


def per_pixel_ssim(img_1: np.ndarray, img_2: np.ndarray) -> float:
    """
    Mean structural similarity computed independently for every pixel.

    Each pixel's statistics are taken over its own color channels only, so this is not
    the usual windowed SSIM. Identical images score 1.
    """
    x = img_1.astype(np.float64)
    y = img_2.astype(np.float64)

    mu_x = x.mean(axis=-1)
    mu_y = y.mean(axis=-1)
    var_x = x.var(axis=-1)
    var_y = y.var(axis=-1)
    cov = ((x - mu_x[..., None]) * (y - mu_y[..., None])).mean(axis=-1)

    ssim_map = ((2 * mu_x * mu_y + SSIM_C1) * (2 * cov + SSIM_C2)) / \
               ((mu_x ** 2 + mu_y ** 2 + SSIM_C1) * (var_x + var_y + SSIM_C2))
    return float(np.mean(ssim_map))


def rgb_to_lab(img: np.ndarray) -> np.ndarray:
    """Convert an 8-bit sRGB image to CIE Lab."""
    return colour.XYZ_to_Lab(colour.sRGB_to_XYZ(img.astype(np.float64) / 255))


def mean_delta_e(reference_lab: np.ndarray, img: np.ndarray) -> float:
    """Mean CIE 1976 color difference between a Lab reference and an RGB image."""
    return float(np.mean(delta_E_CIE1976(reference_lab, rgb_to_lab(img))))


def triangle_angles(vertices) -> tuple[float, float, float]:
    """Interior angles (in degrees) of a triangle. Angles next to a zero-length edge are NaN."""
    (ax, ay), (bx, by), (cx, cy) = vertices

    ab = float((bx - ax) ** 2 + (by - ay) ** 2)
    bc = float((cx - bx) ** 2 + (cy - by) ** 2)
    ca = float((ax - cx) ** 2 + (ay - cy) ** 2)

    def angle(opposite: float, side_1: float, side_2: float) -> float:
        denominator = 2 * np.sqrt(side_1 * side_2)
        if denominator == 0:
            return np.nan
        cosine = np.clip((side_1 + side_2 - opposite) / denominator, -1, 1)
        return float(np.degrees(np.arccos(cosine)))

    return angle(bc, ab, ca), angle(ca, ab, bc), angle(ab, bc, ca)


def is_degenerate(vertices, threshold: float) -> bool:
    """Check if any interior angle is at most `threshold` degrees. Undefined angles count as degenerate."""
    return any(not np.isfinite(a) or a <= threshold for a in triangle_angles(vertices))


def save_document_as_svg(document, output_path: str) -> None:
    """Write a vector document to an SVG file."""
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(document.to_svg())


def save_evolution_progress_as_gif(
        img_history: list[tuple[int, np.ndarray]],
        original_img: np.ndarray,
        duration: float,
        output_path: str
):
    """Save the evolution progress as a GIF animation."""
    text_position = (10, 10)
    text_color = (255, 255, 255)
    font = ImageFont.load_default()
    frames = []

    for n_triangles, img_array in img_history:
        if original_img.shape[0] != img_array.shape[0]:
            img_array = resize_image(img_array, height=original_img.shape[0])

        img = Image.fromarray(img_array)
        draw = ImageDraw.Draw(img)
        draw.text(text_position, f'triangles: {n_triangles}', fill=text_color, font=font)
        frames.append(Image.fromarray(np.hstack((original_img, np.array(img)))))

    frames[0].save(output_path, format='GIF', append_images=frames[1:], save_all=True, duration=duration, loop=0)
