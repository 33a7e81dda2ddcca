"""Per-request sampling decision."""

import random


class Sampler:
    """Bernoulli trial deciding whether a request gets profiled.

    Every call is an independent draw, so the effective sampling rate only holds if
    the caller asks once per request.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def should_sample(self, ratio: int) -> bool:
        """Draw once from [1, 100] and sample if the draw does not exceed the ratio.

        Args:
            ratio: Percentage of requests to profile. 0 never samples, 100 always does.

        Returns:
            True if this request should be profiled.
        """
        return self.rng.randint(1, 100) <= ratio
