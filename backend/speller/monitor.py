"""Threshold monitor over an asynchronous probability stream."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from speller.errors import SubscriptionLost
from speller.models import ProbabilitySample

if TYPE_CHECKING:
    from speller.sources import ProbabilitySource, Subscription

logger = logging.getLogger(__name__)

TRIGGER_MODES = ("level", "edge")


class ProbabilityMonitor:
    """Fires ``on_trigger(timestamp)`` for samples strictly above ``threshold``.

    In ``level`` mode every such sample fires; in ``edge`` mode only a sample
    that follows one at or below the threshold does. The monitor never rate
    limits.
    """

    def __init__(
        self,
        on_trigger: Callable[[float], None],
        threshold: float = 0.3,
        mode: str = "level",
        on_sample: Callable[[ProbabilitySample, bool], None] | None = None,
    ) -> None:
        self._on_trigger = on_trigger
        self._on_sample_cb = on_sample
        self.threshold = threshold
        self.mode = mode

        self._last_value: float | None = None
        self._above = False
        self._samples_seen = 0
        self._triggers = 0

        self._subscription: Subscription | None = None
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def mode(self) -> str:
        return self._mode

    @mode.setter
    def mode(self, value: str) -> None:
        if value not in TRIGGER_MODES:
            raise ValueError(f"trigger mode must be one of {TRIGGER_MODES}, got {value!r}")
        self._mode = value

    @property
    def last_value(self) -> float | None:
        return self._last_value

    @property
    def samples_seen(self) -> int:
        return self._samples_seen

    @property
    def triggers(self) -> int:
        return self._triggers

    @property
    def is_attached(self) -> bool:
        return self._subscription is not None

    def on_sample(self, sample: ProbabilitySample) -> bool:
        crossed = sample.value > self.threshold
        was_above = self._above
        self._above = crossed
        self._last_value = sample.value
        self._samples_seen += 1

        fire = crossed and (self._mode == "level" or not was_above)
        if fire:
            self._triggers += 1
        if self._on_sample_cb is not None:
            self._on_sample_cb(sample, fire)
        if fire:
            self._on_trigger(sample.timestamp)
        return fire

    def attach(
        self,
        source: ProbabilitySource,
        dispatch: Callable[[Callable[[], None]], None] | None = None,
        on_lost: Callable[[SubscriptionLost], None] | None = None,
    ) -> Subscription:
        """Subscribe to *source*.

        With *dispatch*, each sample is handed over as a callable so it runs
        on the caller's single-writer loop; samples still queued when
        :meth:`detach` returns are discarded.
        """
        with self._lock:
            if self._subscription is not None:
                return self._subscription
            generation = self._generation

            def _deliver(sample: ProbabilitySample) -> None:
                if dispatch is None:
                    self._deliver_if_current(generation, sample)
                else:
                    dispatch(lambda: self._deliver_if_current(generation, sample))

            def _lost(exc: SubscriptionLost) -> None:
                logger.warning("Probability subscription lost: %s", exc)
                if on_lost is not None:
                    on_lost(exc)

            self._subscription = source.subscribe(_deliver, on_error=_lost)
            self._above = False
            logger.info("Monitor attached (threshold=%.2f, mode=%s)", self.threshold, self._mode)
            return self._subscription

    def detach(self) -> None:
        """Stop delivery. Waits for a sample already inside ``on_sample`` to finish."""
        with self._lock:
            subscription = self._subscription
            self._subscription = None
            self._generation += 1
        if subscription is not None:
            subscription.unsubscribe()
            logger.info("Monitor detached")

    def _deliver_if_current(self, generation: int, sample: ProbabilitySample) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self.on_sample(sample)
