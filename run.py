import os
import logging
from tqdm import tqdm
from PIL import Image
from datetime import datetime
from argparse import ArgumentParser, SUPPRESS
from GA import FitnessAlgorithm, TriangleOptimizer, default_params
from utils import (
    load_reference_image,
    resize_image,
    save_document_as_svg,
    save_evolution_progress_as_gif
)
from config import (
    OUTPUT_DIR,
    OUTPUT_FILENAME_SUFFIX,
    DEFAULT_SVG_FILENAME,
    ANIMATION_IMAGE_WIDTH,
    ANIMATION_FILENAME_SUFFIX,
    ANIMATION_DURATION,
    DEFAULT_RUN_PARAMS,
    GA_PARAMS
)

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(add_help=False, description='Approximate an image with evolved triangles.')
    required = parser.add_argument_group('required arguments')
    optional = parser.add_argument_group('optional arguments')

    optional.add_argument(
        '-h',
        '--help',
        action='help',
        default=SUPPRESS,
        help='show this help message and exit'
    )
    required.add_argument('-i', '--image_path', required=True, type=str,
                          help='path of the reference image')
    optional.add_argument('-o', '--output', default=None, type=str,
                          help='output SVG path (defaults to the image path with an .svg extension)')
    optional.add_argument('--n_triangles', default=GA_PARAMS['num_triangles'], type=int,
                          help='number of triangles to place')
    optional.add_argument('--image_size', default=GA_PARAMS['image_size'], type=int,
                          help='side of the square working canvas in pixels')
    optional.add_argument('--n_generations', default=GA_PARAMS['num_generations'], type=int,
                          help='number of generations per triangle')
    optional.add_argument('--population_size', default=GA_PARAMS['population_size'], type=int,
                          help='number of candidate triangles per generation')
    optional.add_argument('--n_selected', default=GA_PARAMS['num_selected'], type=int,
                          help='number of candidates kept as parents')
    optional.add_argument('--mutation_rate', default=GA_PARAMS['mutation_rate'], type=float,
                          help='probability of mutating a child')
    optional.add_argument('--degeneracy_threshold', default=GA_PARAMS['degeneracy_threshold'], type=float,
                          help='reject triangles with an interior angle of at most this many degrees')
    optional.add_argument('--seed', default=GA_PARAMS['seed'], type=int,
                          help='random seed (defaults to the current time)')
    optional.add_argument('--fitness', default=GA_PARAMS['fitness_algorithm'],
                          choices=[a.value for a in FitnessAlgorithm],
                          help='image similarity used as fitness')
    optional.add_argument('--opacity', action='store_true', dest='use_opacity',
                          help='evolve translucent triangles')
    optional.add_argument('--workers', default=GA_PARAMS['max_workers'], type=int,
                          help='size of the worker pool (defaults to the number of CPUs)')
    optional.add_argument('--n_seconds', default=DEFAULT_RUN_PARAMS['n_seconds'], type=float,
                          help='time budget of the run (in seconds)')
    optional.add_argument('--save_every', default=DEFAULT_RUN_PARAMS['save_every'], type=int,
                          help='save the SVG after every n committed triangles')
    optional.add_argument('--no_animation', action='store_false', dest='animation',
                          help='do not save the evolution progress as a GIF animation')
    optional.add_argument('--img_history_step', default=DEFAULT_RUN_PARAMS['img_history_step'], type=int,
                          help='frequency at which canvases are included in the GIF animation '
                               '(e.g. 10 for every 10th triangle)')
    return parser


def get_output_path(image_path: str) -> str:
    """Get the SVG path next to the reference image."""
    if not image_path:
        return DEFAULT_SVG_FILENAME

    return os.path.splitext(image_path)[0] + '.svg'


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    params = default_params(
        num_triangles=args.n_triangles,
        image_size=args.image_size,
        num_generations=args.n_generations,
        population_size=args.population_size,
        num_selected=args.n_selected,
        mutation_rate=args.mutation_rate,
        degeneracy_threshold=args.degeneracy_threshold,
        seed=args.seed,
        fitness_algorithm=args.fitness,
        use_opacity=args.use_opacity,
        max_workers=args.workers
    )
    optimizer = TriangleOptimizer(
        params,
        n_seconds=args.n_seconds,
        save_every=args.save_every,
        img_history_step=args.img_history_step if args.animation else None
    )

    reference = load_reference_image(args.image_path, params.image_size)
    output_path = args.output or get_output_path(args.image_path)

    optimizer.start(reference, on_checkpoint=lambda document: save_document_as_svg(document, output_path))

    progress_bar = tqdm(desc='Triangle evolution', total=params.num_triangles)
    try:
        while not optimizer.join(timeout=0.2):
            progress = optimizer.get_progress()
            progress_bar.n = progress.n_committed
            progress_bar.set_postfix(triangle=progress.triangle_index, generation=progress.generation_index)

    except KeyboardInterrupt:
        logger.info('Interrupted, stopping after the current generation')
        optimizer.stop()
        optimizer.join()

    finally:
        progress_bar.n = optimizer.get_progress().n_committed
        progress_bar.close()

    result = optimizer.result
    logger.info('SVG with %d triangles saved to %s', len(result.triangles), output_path)

    os.makedirs(OUTPUT_DIR, exist_ok=True)
    current_time = datetime.today().strftime('%Y-%m-%d_%H-%M')
    image_name = os.path.splitext(os.path.basename(args.image_path))[0]

    output_filename = f'{image_name}_{OUTPUT_FILENAME_SUFFIX}_{current_time}.png'
    Image.fromarray(result.canvas).save(os.path.join(OUTPUT_DIR, output_filename))

    if args.animation and result.img_history:
        reference_resized = resize_image(reference, width=ANIMATION_IMAGE_WIDTH)

        animation_filename = f'{image_name}_{ANIMATION_FILENAME_SUFFIX}_{current_time}.gif'
        save_evolution_progress_as_gif(
            img_history=result.img_history,
            original_img=reference_resized,
            duration=ANIMATION_DURATION,
            output_path=os.path.join(OUTPUT_DIR, animation_filename)
        )


if __name__ == '__main__':
    main()
