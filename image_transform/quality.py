"""Encoder quality search.

Binary search over the quality parameter until the encoded size lands
within an acceptable range of a target byte size. Assumes file size grows
with quality; codecs where it does not may simply use up the step budget.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from image_transform.errors import EncodeFailure
from image_transform.logger import get_logger

_logger = get_logger("quality")

# .10 means anything between 90% and 110% of the target size is acceptable.
ACCEPTABLE_RANGE = 0.10
MAX_STEPS = 10


@dataclass
class QualityState:
    min_quality: int
    max_quality: int
    step: int = 0
    current_quality: int | None = None
    last_encoded_size: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.min_quality <= self.max_quality <= 100:
            raise ValueError(f"Invalid quality bounds: {self.min_quality}..{self.max_quality}")

    @property
    def mid_quality(self) -> int:
        return int(math.ceil(self.min_quality + (self.max_quality - self.min_quality) / 2))


@dataclass(frozen=True)
class SearchResult:
    quality: int
    size: int
    steps: int
    data: bytes


class QualitySearch:
    """Find the quality whose encoded size is closest to ``target_size``.

    ``encode`` maps a quality value to the encoded bytes; it is expected to
    raise :class:`EncodeFailure` on error.
    """

    def __init__(
        self,
        target_size: int,
        min_quality: int = 0,
        max_quality: int = 100,
        acceptable_range: float = ACCEPTABLE_RANGE,
        max_steps: int = MAX_STEPS,
    ):
        if target_size <= 0:
            raise ValueError(f"target_size must be positive, got {target_size}")
        self.target_size = target_size
        self.min_quality = min_quality
        self.max_quality = max_quality
        self.acceptable_range = acceptable_range
        self.max_steps = max_steps

    def initial_state(self) -> QualityState:
        return QualityState(self.min_quality, self.max_quality)

    def is_converged(self, state: QualityState, quality: int, size: int) -> bool:
        return (
            state.step >= self.max_steps
            or abs(1 - self.target_size / size) < self.acceptable_range
            or quality == state.max_quality
        )

    def advance(self, state: QualityState, quality: int, size: int) -> QualityState:
        """Narrow the bounds after encoding ``quality`` produced ``size`` bytes."""
        if size > self.target_size:
            # Too big, bring the ceiling down.
            return QualityState(state.min_quality, quality, state.step + 1, quality, size)
        return QualityState(quality, state.max_quality, state.step + 1, quality, size)

    def _encode(self, encode: Callable[[int], bytes], quality: int) -> bytes:
        try:
            data = encode(quality)
        except EncodeFailure as e:
            _logger.error("encode failed at quality %d: %s", quality, e)
            if e.quality is None:
                e.quality = quality
            raise
        if not data:
            raise EncodeFailure("Encoder produced no output", quality=quality)
        return data

    def run(self, encode: Callable[[int], bytes], state: QualityState | None = None) -> SearchResult:
        state = state or self.initial_state()
        while True:
            quality = state.mid_quality
            size = len(self._encode(encode, quality))
            _logger.debug(
                "step %d: quality %d in [%d, %d] -> %d bytes (target %d)",
                state.step,
                quality,
                state.min_quality,
                state.max_quality,
                size,
                self.target_size,
            )
            if self.is_converged(state, quality, size):
                break
            state = self.advance(state, quality, size)

        # Generate one last time so the returned bytes are the ones measured.
        data = self._encode(encode, quality)
        _logger.info("quality search settled on %d (%d bytes) after %d steps", quality, len(data), state.step)
        return SearchResult(quality=quality, size=len(data), steps=state.step, data=data)
