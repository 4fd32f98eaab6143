"""
frequency.py
-------------
Frequency band lookup layer.

Loads the frequency bands from config.yaml and answers two questions for
the detector:

    1. Which frequency does a mean interval (in days) belong to?
    2. Given a last-seen date and a frequency, when is the next one due?

Band updates happen in config.yaml; no code changes required.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from config.config_loader import get_frequency_bands, get_fallback_band


@dataclass(frozen=True)
class FrequencyBand:
    """One inclusive mean-interval window and its scoring parameters."""

    name: str
    min_days: float
    max_days: float
    expected_days: float
    tolerance_days: float
    step_days: int = 0
    step_months: int = 0
    discount: float = 1.0            # Applied after the 100 clamp; < 1.0 only on the fallback band

    @property
    def is_discounted(self) -> bool:
        return self.discount < 1.0

    def contains(self, mean_interval: float) -> bool:
        return self.min_days <= mean_interval <= self.max_days

    @classmethod
    def from_config(cls, entry: Dict) -> "FrequencyBand":
        return cls(
            name=entry["name"],
            min_days=float(entry["min_days"]),
            max_days=float(entry["max_days"]),
            expected_days=float(entry["expected_days"]),
            tolerance_days=float(entry["tolerance_days"]),
            step_days=int(entry.get("step_days", 0)),
            step_months=int(entry.get("step_months", 0)),
            discount=float(entry.get("discount", 1.0)),
        )


class FrequencyClassifier:
    """
    Ordered lookup from mean interval → FrequencyBand.

    Standard bands are tested top to bottom and the first match wins. The
    fallback band is only consulted when none of them match, so an exact
    monthly mean (28–35) never picks up the fallback discount.
    """

    def __init__(self):
        self.bands: List[FrequencyBand] = [FrequencyBand.from_config(b) for b in get_frequency_bands()]
        self.fallback: FrequencyBand = FrequencyBand.from_config(get_fallback_band())
        self._by_name: Dict[str, FrequencyBand] = {}
        for band in self.bands:
            self._by_name.setdefault(band.name, band)

    def classify(self, mean_interval: float) -> Optional[FrequencyBand]:
        """
        Args:
            mean_interval: Arithmetic mean of a group's day gaps.

        Returns:
            The matching band, or None if the group has no clear cadence.
        """
        for band in self.bands:
            if band.contains(mean_interval):
                return band
        if self.fallback.contains(mean_interval):
            return self.fallback
        return None

    def next_expected_date(self, last_date: date, frequency: str) -> date:
        """
        Advances last_date by one step of the named frequency.

        Month and year steps use calendar arithmetic (pd.DateOffset), which
        clamps to the end of a shorter month: Jan 31 + 1 month → Feb 28/29.

        Raises:
            KeyError: If frequency is not a configured band name.
        """
        band = self._by_name.get(frequency)
        if band is None:
            if frequency != self.fallback.name:
                raise KeyError(
                    f"Unknown frequency '{frequency}'. "
                    f"Available: {list(self._by_name.keys())}"
                )
            band = self.fallback

        offset = pd.DateOffset(days=band.step_days, months=band.step_months)
        return (pd.Timestamp(last_date) + offset).date()

    def get_all_frequencies(self) -> list[str]:
        """Returns all configured frequency names in band order."""
        return list(self._by_name.keys())

    def __repr__(self) -> str:
        return f"FrequencyClassifier(bands={self.get_all_frequencies()}, fallback={self.fallback.name})"
