import dataclasses

import pytest

from pixel_sorter import DeltaDetector, FixedDetector, ThresholdDetector
from sort_config import PixelSortError, SortConfig, unset_sentinel


def test_defaults():
    config = SortConfig()
    assert config.direction == "both"
    assert config.chunking == "threshold"
    assert config.threshold == 50.0
    assert config.min_chunk is None
    assert config.chunk_size is None
    assert config.out_suffix == "sorted"
    assert config.validate() is config


def test_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        SortConfig().direction = "x"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"direction": "z"},
        {"chunking": "random"},
        {"threshold": -1.0},
        {"threshold": float("nan")},
        {"threshold": float("inf")},
        {"out_suffix": "../x"},
        {"out_suffix": "a/b"},
        {"min_chunk": -2},
        {"chunk_size": -5},
        {"out_suffix": ""},
        {"workers": -1},
    ],
)
def test_validate_rejects(kwargs):
    with pytest.raises(PixelSortError):
        SortConfig(**kwargs).validate()


def test_detector_threshold():
    detector = SortConfig(min_chunk=4).detector()
    assert isinstance(detector, ThresholdDetector)
    assert detector.min_chunk == 4


def test_detector_fixed():
    detector = SortConfig(chunking="fixed", chunk_size=8).detector()
    assert isinstance(detector, FixedDetector)
    assert detector.chunk_size == 8


def test_detector_delta():
    detector = SortConfig(chunking="delta", threshold=12.5, min_chunk=2).detector()
    assert isinstance(detector, DeltaDetector)
    assert detector.threshold == 12.5
    assert detector.min_chunk == 2


def test_worker_count():
    assert SortConfig(workers=3).worker_count() == 3
    assert SortConfig(workers=0).worker_count() >= 1
    assert SortConfig(workers=None).worker_count() >= 1


@pytest.mark.parametrize("value,expected", [(-1, None), (None, None), (0, 0), (7, 7)])
def test_unset_sentinel(value, expected):
    assert unset_sentinel(value) == expected
