# -*- coding: utf-8 -*-
"""
adaptive_parsimony.py - Running histogram of expression complexities

Sizes that are already common in the populations are penalised during
acceptance and tournament selection, which spreads the search over the
whole complexity range instead of piling up at one size.
"""
import numpy as np

DEFAULT_WINDOW_SIZE = 100000
OUT_OF_RANGE_FREQUENCY = 1e-6


class RunningSearchStatistics:
    """Windowed frequency of each complexity ``1 .. maxsize``."""

    def __init__(self, options, window_size: int = DEFAULT_WINDOW_SIZE):
        self.maxsize = options.maxsize
        self.window_size = window_size
        self.frequencies = np.ones(self.maxsize, dtype=float)
        self.normalized_frequencies = self.frequencies / self.frequencies.sum()

    def update_frequencies(self, size: int):
        if 0 < size <= self.maxsize:
            self.frequencies[size - 1] += 1

    def move_window(self):
        """Shrink counts evenly until they sum to at most ``window_size``."""
        smallest_frequency_allowed = 1.0
        max_loops = 1000
        difference = self.frequencies.sum() - self.window_size
        num_loops = 0
        while difference > 0:
            indices = np.nonzero(self.frequencies > smallest_frequency_allowed)[0]
            if len(indices) == 0:
                break
            amount = min(difference / len(indices),
                         float(np.min(self.frequencies[indices] - smallest_frequency_allowed)))
            self.frequencies[indices] -= amount
            total = amount * len(indices)
            difference -= total
            num_loops += 1
            if num_loops > max_loops or total < 1e-6:
                break

    def normalize(self):
        self.normalized_frequencies = self.frequencies / self.frequencies.sum()

    def frequency_of(self, size: int) -> float:
        if 0 < size <= self.maxsize:
            return float(self.normalized_frequencies[size - 1])
        return OUT_OF_RANGE_FREQUENCY

    def copy(self) -> "RunningSearchStatistics":
        new = RunningSearchStatistics.__new__(RunningSearchStatistics)
        new.maxsize = self.maxsize
        new.window_size = self.window_size
        new.frequencies = self.frequencies.copy()
        new.normalized_frequencies = self.normalized_frequencies.copy()
        return new
