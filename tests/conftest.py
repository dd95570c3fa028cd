import numpy as np
import pytest
from GA import default_params


@pytest.fixture
def red_reference() -> np.ndarray:
    """8x8 solid red image."""
    img = np.zeros((8, 8, 3), dtype=np.uint8)
    img[..., 0] = 255
    return img


@pytest.fixture
def gradient_reference() -> np.ndarray:
    """16x16 image with a horizontal red and a vertical blue gradient."""
    ramp = np.linspace(0, 255, 16).astype(np.uint8)
    img = np.zeros((16, 16, 3), dtype=np.uint8)
    img[..., 0] = ramp[None, :]
    img[..., 2] = ramp[:, None]
    img[..., 1] = 80
    return img


@pytest.fixture
def small_params():
    """Parameters of a short run on the 16x16 gradient."""
    return default_params(
        num_triangles=4,
        image_size=16,
        num_generations=3,
        population_size=8,
        num_selected=4,
        mutation_rate=0.5,
        seed=7,
        max_workers=2
    )
