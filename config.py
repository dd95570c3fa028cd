OUTPUT_DIR = './outputs'
OUTPUT_FILENAME_SUFFIX = 'triangles'
DEFAULT_SVG_FILENAME = 'output.svg'
ANIMATION_IMAGE_WIDTH = 240
ANIMATION_FILENAME_SUFFIX = 'evolution_progress'
ANIMATION_DURATION = 15

DEFAULT_RUN_PARAMS = {
    'img_history_step': 10,
    'save_every': 50,
    'n_seconds': None
}

GA_PARAMS = {
    'num_triangles': 512,
    'image_size': 256,
    'num_generations': 256,
    'population_size': 128,
    'num_selected': 64,
    'mutation_rate': 0.1,
    'degeneracy_threshold': None,
    'seed': None,
    'fitness_algorithm': 'mse',
    'use_opacity': False,
    'max_workers': None
}

# Mutation jitter: vertices move by up to this fraction of the canvas side,
# color channels and opacity by a fixed amount. Each gene is crossed over or
# mutated independently with GENE_PROBABILITY.
VERTEX_JITTER_FRACTION = 0.1
COLOR_JITTER = 10
OPACITY_JITTER = 0.1
GENE_PROBABILITY = 0.5

# Stabilizing constants of the per-pixel SSIM (dynamic range 255).
SSIM_C1 = (0.01 * 255) ** 2
SSIM_C2 = (0.03 * 255) ** 2

BACKGROUND_COLOR = (0, 0, 0)
