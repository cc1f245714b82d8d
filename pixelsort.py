import argparse
import os
import sys

from pixel_sorter import output_filename, sort_pixels
from sort_config import CHUNKINGS, DIRECTIONS, PixelSortError, SortConfig, unset_sentinel


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pixelsort",
        description="Pixel Sorter - Create glitch art by sorting runs of pixels by lightness",
    )
    parser.add_argument("input", help="Input .png image path")
    parser.add_argument(
        "--out.dir",
        "--out-dir",
        dest="out_dir",
        default="",
        help="Output directory (default: current directory)",
    )
    parser.add_argument(
        "--out.suffix",
        "--out-suffix",
        dest="out_suffix",
        default="sorted",
        help="Output the sorted image with the given suffix: foo.png -> foo.<suffix>.png (default: sorted)",
    )
    parser.add_argument(
        "--sort.direction",
        "--direction",
        dest="direction",
        choices=DIRECTIONS,
        default="both",
        help="x (rows), y (columns) or both (default: both)",
    )
    parser.add_argument(
        "--sort.chunking",
        "--chunking",
        dest="chunking",
        choices=CHUNKINGS,
        default="threshold",
        help="How chunk boundaries are found (default: threshold)",
    )
    parser.add_argument(
        "--sort.threshold",
        "--threshold",
        dest="threshold",
        type=float,
        default=50.0,
        help="Delta chunking: start a new chunk if the lightness changes by more than this percentage (default: 50)",
    )
    parser.add_argument(
        "--sort.chunk.min",
        "--min-chunk",
        dest="min_chunk",
        type=int,
        default=-1,
        help="Do not reset a chunk unless it is at least this big in pixels, -1 for no minimum (default: -1)",
    )
    parser.add_argument(
        "--sort.chunk.size",
        "--chunk-size",
        dest="chunk_size",
        type=int,
        default=-1,
        help="Fixed chunking: chunk length in pixels, -1 for whole lines (default: -1)",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=1,
        help="Threads sorting scan lines, 0 to auto-detect (default: 1)",
    )
    return parser


def config_from_args(args):
    return SortConfig(
        direction=args.direction,
        chunking=args.chunking,
        threshold=args.threshold,
        min_chunk=unset_sentinel(args.min_chunk),
        chunk_size=unset_sentinel(args.chunk_size),
        out_suffix=args.out_suffix,
        out_dir=args.out_dir,
        workers=args.workers,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)

    print(f"Processing {args.input}...")

    try:
        config = config_from_args(args).validate()
        output_path = os.path.join(
            config.out_dir, output_filename(args.input, config.out_suffix)
        )
        sort_pixels(args.input, output_path, config)
    except PixelSortError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
