"""Configuration and validation for the pixel sorter."""

import math
import multiprocessing
import os
from dataclasses import dataclass
from typing import Optional


DIRECTIONS = ("x", "y", "both")
CHUNKINGS = ("threshold", "fixed", "delta")


class PixelSortError(Exception):
    """Base exception for pixel sorting errors."""

    pass


@dataclass(frozen=True)
class SortConfig:
    """Parameters fixed for the duration of one sorting run."""

    direction: str = "both"
    chunking: str = "threshold"
    threshold: float = 50.0  # percentage change, delta chunking only
    min_chunk: Optional[int] = None  # None = no minimum
    chunk_size: Optional[int] = None  # None = whole line
    out_suffix: str = "sorted"
    out_dir: str = ""
    workers: Optional[int] = 1

    def validate(self):
        """
        Check every field is in range.

        Raises:
            PixelSortError: If a field has an unsupported value.
        """
        if self.direction not in DIRECTIONS:
            raise PixelSortError(
                f"Unknown direction {self.direction!r}, use one of {', '.join(DIRECTIONS)}"
            )
        if self.chunking not in CHUNKINGS:
            raise PixelSortError(
                f"Unknown chunking {self.chunking!r}, use one of {', '.join(CHUNKINGS)}"
            )
        if not math.isfinite(self.threshold) or self.threshold < 0:
            raise PixelSortError("Threshold must be a finite, non-negative percentage")
        if self.min_chunk is not None and self.min_chunk < 0:
            raise PixelSortError("Minimum chunk size cannot be negative")
        if self.chunk_size is not None and self.chunk_size < 0:
            raise PixelSortError("Fixed chunk size cannot be negative")
        if not self.out_suffix:
            raise PixelSortError("Output suffix cannot be empty")
        if any(sep and sep in self.out_suffix for sep in (os.sep, os.altsep)):
            raise PixelSortError(
                f"Output suffix {self.out_suffix!r} cannot contain a path separator"
            )
        if self.workers is not None and self.workers < 0:
            raise PixelSortError("Worker count cannot be negative")
        return self

    def detector(self):
        """Build the boundary detector selected by ``chunking``."""
        from pixel_sorter import DeltaDetector, FixedDetector, ThresholdDetector

        if self.chunking == "fixed":
            return FixedDetector(self.chunk_size)
        if self.chunking == "delta":
            return DeltaDetector(self.threshold, self.min_chunk)
        return ThresholdDetector(self.min_chunk)

    def worker_count(self):
        """Resolve ``workers``; 0 or None means auto-detect."""
        if not self.workers:
            return max(1, multiprocessing.cpu_count() - 1)  # Leave one core free
        return self.workers


def unset_sentinel(value):
    """Map the command line's -1 "unset" sentinel to None."""
    if value is None or value == -1:
        return None
    return value
