"""Sort runs of pixels along rows and columns by lightness (glitch art)."""

import math
import os
import tempfile

import numpy as np
from PIL import Image

from sort_config import PixelSortError, SortConfig

AXES = ("row", "column")

# Lightness band (8-bit scale) that closes a chunk in threshold chunking
BAND_LOW = 64
BAND_HIGH = 96
MIN_ALPHA = 32


def lightness(r, g, b, a):
    """
    Alpha-weighted perceptual luma of a single RGBA sample.

    Channels are 16-bit (0-65535) and get normalized to 8-bit before weighting.
    Fully transparent pixels have lightness 0.
    """
    if a == 0:
        return 0.0
    r, g, b, a = r // 257, g // 257, b // 257, a // 257
    a_mod = a / 255.0

    return 0.2126 * (r * a_mod) + 0.7152 * (g * a_mod) + 0.0722 * (b * a_mod)


def _check_grid(grid):
    if grid.ndim != 3 or grid.shape[2] not in (3, 4):
        raise PixelSortError(
            f"Expected a (height, width, 3|4) pixel grid, got shape {grid.shape}"
        )


def _channels_8bit(grid):
    if grid.dtype == np.uint16:
        return (grid // 257).astype(np.float64)
    return grid.astype(np.float64)


def lightness_map(grid):
    """Vectorized lightness of every pixel, shape (height, width)."""
    _check_grid(grid)
    channels = _channels_8bit(grid)

    if grid.shape[2] == 4:
        a_mod = channels[:, :, 3] / 255.0
    else:
        a_mod = np.ones(grid.shape[:2])

    return (
        0.2126 * (channels[:, :, 0] * a_mod)
        + 0.7152 * (channels[:, :, 1] * a_mod)
        + 0.0722 * (channels[:, :, 2] * a_mod)
    )


def alpha_map(grid):
    """8-bit alpha of every pixel; RGB grids are fully opaque."""
    _check_grid(grid)
    if grid.shape[2] == 3:
        return np.full(grid.shape[:2], 255, dtype=np.uint8)
    if grid.dtype == np.uint16:
        return (grid[:, :, 3] // 257).astype(np.uint8)
    return grid[:, :, 3].astype(np.uint8)


class BoundaryDetector:
    """
    Decides where chunks end along a scan line.

    ``closes`` is called once per pixel, after the pixel joined the current
    chunk. Returning True closes the chunk, current pixel included.
    """

    def __init__(self, min_chunk=None):
        self.min_chunk = min_chunk

    def big_enough(self, chunk_len):
        if self.min_chunk is None:
            return True
        return chunk_len >= self.min_chunk

    def closes(self, chunk_len, index, line_len, light, prev_light, alpha):
        raise NotImplementedError

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


class ThresholdDetector(BoundaryDetector):
    """Close a chunk on any opaque-enough pixel inside the lightness band."""

    @staticmethod
    def in_band(light, alpha):
        if alpha < MIN_ALPHA:
            return False
        return not (light < BAND_LOW or light > BAND_HIGH)

    def closes(self, chunk_len, index, line_len, light, prev_light, alpha):
        # End of line closes regardless of min_chunk
        if index == line_len - 1:
            return True
        return self.in_band(light, alpha) and self.big_enough(chunk_len)


class FixedDetector(BoundaryDetector):
    """Close a chunk every ``chunk_size`` pixels (None = whole line)."""

    def __init__(self, chunk_size=None):
        super().__init__()
        self.chunk_size = chunk_size

    def closes(self, chunk_len, index, line_len, light, prev_light, alpha):
        if index == line_len - 1:
            return True
        if self.chunk_size is None:
            return False
        return chunk_len >= max(self.chunk_size, 1)


def change_percent(light, prev_light):
    """Signed lightness change from ``prev_light`` as a percentage."""
    if prev_light == 0:
        return 0.0 if light == 0 else math.inf
    return (light - prev_light) / prev_light * 100


class DeltaDetector(BoundaryDetector):
    """Close a chunk when lightness jumps by more than ``threshold`` percent."""

    def __init__(self, threshold=50.0, min_chunk=None):
        super().__init__(min_chunk)
        self.threshold = threshold

    def closes(self, chunk_len, index, line_len, light, prev_light, alpha):
        if index == line_len - 1:
            return True
        if prev_light is None:
            return False
        change = change_percent(light, prev_light)
        return abs(change) > self.threshold and self.big_enough(chunk_len)


def chunk_bounds(detector, light, alpha):
    """
    Split one scan line into chunks.

    Returns a list of (start, end) spans covering the line exactly once.
    """
    light = np.asarray(light).tolist()
    alpha = np.asarray(alpha).tolist()
    line_len = len(light)
    bounds = []
    start = 0

    for i in range(line_len):
        chunk_len = i - start + 1
        prev_light = light[i - 1] if chunk_len > 1 else None
        if detector.closes(chunk_len, i, line_len, light[i], prev_light, alpha[i]):
            bounds.append((start, i + 1))
            start = i + 1

    return bounds


def sort_line(pixels, light, alpha, detector):
    """Sort every chunk of a scan line by descending lightness."""
    light = np.asarray(light)
    result = np.empty_like(pixels)

    for start, end in chunk_bounds(detector, light, alpha):
        # Stable, so equal lightness keeps scan order
        order = np.argsort(-light[start:end], kind="stable")
        result[start:end] = pixels[start:end][order]

    return result


def prepare_pass(grid, axis):
    """
    Allocate the output of a pass and line-major views over it.

    Returns (output, source_lines, output_lines, light_lines, alpha_lines);
    for a column pass the views are transposed so each line is a column.
    """
    _check_grid(grid)
    if axis not in AXES:
        raise PixelSortError(f"Unknown axis {axis!r}, use 'row' or 'column'")

    output = np.empty_like(grid)
    light = lightness_map(grid)
    alpha = alpha_map(grid)

    if axis == "column":
        return (
            output,
            grid.transpose(1, 0, 2),
            output.transpose(1, 0, 2),
            light.T,
            alpha.T,
        )
    return output, grid, output, light, alpha


def sort_pass(grid, axis, detector):
    """
    One full sweep along ``axis`` ('row' or 'column').

    The input grid is left untouched; a new grid of the same shape is returned.
    """
    output, source, target, light, alpha = prepare_pass(grid, axis)

    for i in range(source.shape[0]):
        target[i] = sort_line(source[i], light[i], alpha[i], detector)

    return output


def run_passes(grid, direction, pass_fn):
    """Column pass (y) first, then the row pass (x) on its output."""
    result = grid
    if direction in ("y", "both"):
        result = pass_fn(result, "column")
    if direction in ("x", "both"):
        result = pass_fn(result, "row")
    return result


def sort_image(grid, config=None):
    """Apply the passes selected by ``config.direction`` to a pixel grid."""
    config = (config or SortConfig()).validate()
    detector = config.detector()

    return run_passes(
        grid, config.direction, lambda g, axis: sort_pass(g, axis, detector)
    )


def output_filename(input_path, suffix):
    """foo.png -> foo.<suffix>.png"""
    root, extension = os.path.splitext(os.path.basename(input_path))
    return f"{root}.{suffix}{extension}"


def check_extension(image_path):
    extension = os.path.splitext(os.path.basename(image_path))[1]
    if extension.lower() != ".png":
        raise PixelSortError(f"Use a .png image, not a {extension or 'file without extension'}")


def load_grid(image_path):
    """Decode an image file into an RGBA uint8 grid."""
    try:
        with Image.open(image_path) as img:
            return np.array(img.convert("RGBA"))
    except OSError as e:
        raise PixelSortError(f"Failed to open image at {image_path} caused by {e}") from e


def _current_umask():
    umask = os.umask(0)
    os.umask(umask)
    return umask


def save_grid(grid, output_path):
    """
    Encode a grid as PNG.

    The image is written to a temp file next to the destination and moved into
    place, so a failed write never leaves a partial output file.
    """
    if grid.dtype == np.uint16:
        grid = grid // 257
    pixels = grid.astype("uint8")

    directory = os.path.dirname(os.path.abspath(output_path))
    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            delete=False, suffix=".png", dir=directory
        ) as temp:
            temp_path = temp.name
        Image.fromarray(pixels).save(temp_path, format="PNG")
        # Temp files are created 0600; give the output the usual 0666 & ~umask
        os.chmod(temp_path, 0o666 & ~_current_umask())
        os.replace(temp_path, output_path)
    except OSError as e:
        raise PixelSortError(f"Failed to write {output_path} caused by {e}") from e
    finally:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError as e:
                print(f"Warning: Could not delete temp file {temp_path}: {e}")

    return output_path


def sort_pixels(image_path, output_path, config=None):
    """
    Sort pixels in a PNG file to create glitch art effects.

    Args:
        image_path: Path to input image (.png)
        output_path: Path to save sorted image
        config: SortConfig, defaults to threshold chunking in both directions

    Raises:
        PixelSortError: On a non-PNG input, a decode failure or a write failure.
    """
    config = (config or SortConfig()).validate()
    check_extension(image_path)

    pixels = load_grid(image_path)

    if config.worker_count() > 1:
        from pixel_sorter_parallel import sort_image_parallel

        pixels = sort_image_parallel(pixels, config)
    else:
        pixels = sort_image(pixels, config)

    save_grid(pixels, output_path)
    print(f"Sorted image saved to {output_path}")
    return output_path
