from concurrent.futures import ThreadPoolExecutor
import multiprocessing

from pixel_sorter import prepare_pass, run_passes, sort_line
from sort_config import SortConfig


def process_line(args):
    """Process a single scan line - designed for parallel execution."""
    line_index, pixels, light, alpha, detector = args
    return line_index, sort_line(pixels, light, alpha, detector)


def sort_pass_parallel(grid, axis, detector, num_threads=None):
    """
    Parallel version of ``pixel_sorter.sort_pass``.

    Scan lines write to disjoint parts of the output, so the result is
    identical to the serial pass.

    Args:
        num_threads: Number of threads (None = auto-detect CPU cores)
    """
    output, source, target, light, alpha = prepare_pass(grid, axis)

    # Auto-detect CPU cores
    if num_threads is None:
        num_threads = max(1, multiprocessing.cpu_count() - 1)  # Leave one core free

    work_items = [
        (i, source[i], light[i], alpha[i], detector) for i in range(source.shape[0])
    ]

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        results = list(executor.map(process_line, work_items))

    # Reconstruct grid from results
    for line_index, sorted_line in results:
        target[line_index] = sorted_line

    return output


def sort_image_parallel(grid, config=None):
    """Thread-pool counterpart of ``pixel_sorter.sort_image``."""
    config = (config or SortConfig()).validate()
    detector = config.detector()
    num_threads = config.worker_count()

    return run_passes(
        grid,
        config.direction,
        lambda g, axis: sort_pass_parallel(g, axis, detector, num_threads),
    )
