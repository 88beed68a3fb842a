"""Probability sources: where the monitor's samples come from.

The simulated source stands in for a headset when ``SIMULATE_PROBABILITY``
is set; the LSL source reads a single-channel probability stream published
on Lab Streaming Layer by whatever classifier is running upstream.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import numpy as np

import config
from speller.errors import SubscriptionLost
from speller.models import ProbabilitySample

logger = logging.getLogger(__name__)

SampleCallback = Callable[[ProbabilitySample], None]
ErrorCallback = Callable[[SubscriptionLost], None]


class Subscription:
    """Owned handle for one subscriber. No callback runs after ``unsubscribe`` returns."""

    def __init__(self, callback: SampleCallback, on_error: ErrorCallback | None = None) -> None:
        self._callback = callback
        self._on_error = on_error
        self._active = True
        self._stop = threading.Event()
        self._lock = threading.RLock()
        self.thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout*; returns True once unsubscribed."""
        return self._stop.wait(timeout)

    def deliver(self, sample: ProbabilitySample) -> bool:
        with self._lock:
            if not self._active:
                return False
            self._callback(sample)
            return True

    def fail(self, exc: SubscriptionLost) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._stop.set()
        if self._on_error is not None:
            self._on_error(exc)

    def unsubscribe(self) -> None:
        with self._lock:
            self._active = False
            self._stop.set()
        thread = self.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=3)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class ProbabilitySource(ABC):
    """Base class for anything that streams probability samples"""

    name = "source"

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while at least one subscriber is being fed"""
        pass

    @abstractmethod
    def subscribe(self, callback: SampleCallback, on_error: ErrorCallback | None = None) -> Subscription:
        """Start delivering samples to *callback*"""
        pass


class ThreadedProbabilitySource(ProbabilitySource):
    """Runs one reader thread per subscription."""

    def __init__(self) -> None:
        self._live = 0
        self._live_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        with self._live_lock:
            return self._live > 0

    def subscribe(self, callback: SampleCallback, on_error: ErrorCallback | None = None) -> Subscription:
        subscription = Subscription(callback, on_error)
        resource = self._open(subscription)
        subscription.thread = threading.Thread(
            target=self._run_guarded, args=(subscription, resource),
            name=f"{self.name}-reader", daemon=True,
        )
        with self._live_lock:
            self._live += 1
        subscription.thread.start()
        return subscription

    def _open(self, subscription: Subscription) -> Any:
        """Acquire whatever this reader needs; raise SubscriptionLost on failure."""
        return None

    @abstractmethod
    def _run(self, subscription: Subscription, resource: Any) -> None:
        """Read samples until the subscription stops"""
        pass

    def _run_guarded(self, subscription: Subscription, resource: Any) -> None:
        try:
            self._run(subscription, resource)
        except SubscriptionLost as exc:
            subscription.fail(exc)
        except Exception as exc:
            logger.exception("%s reader crashed", self.name)
            subscription.fail(SubscriptionLost(str(exc)))
        finally:
            with self._live_lock:
                self._live -= 1


class PushProbabilitySource(ProbabilitySource):
    """Samples are pushed in by the owner, e.g. a bridge or a test."""

    name = "push"

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        with self._lock:
            return any(s.active for s in self._subscriptions)

    def subscribe(self, callback: SampleCallback, on_error: ErrorCallback | None = None) -> Subscription:
        subscription = Subscription(callback, on_error)
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.active]
            self._subscriptions.append(subscription)
        return subscription

    def push(self, value: float, timestamp: float | None = None) -> int:
        sample = ProbabilitySample(
            value=float(value),
            timestamp=time.monotonic() if timestamp is None else timestamp,
        )
        with self._lock:
            targets = list(self._subscriptions)
        return sum(1 for s in targets if s.deliver(sample))

    def close(self, reason: str = "source closed") -> None:
        with self._lock:
            targets, self._subscriptions = self._subscriptions, []
        for s in targets:
            s.fail(SubscriptionLost(reason))


class SimulatedProbabilitySource(ThreadedProbabilitySource):
    """Low baseline noise with occasional spikes above the decode threshold."""

    name = "simulated"

    def __init__(
        self,
        rate_hz: float = config.SIM_SAMPLE_RATE_HZ,
        seed: int | None = 42,
        baseline: float = 0.15,
        spike_chance: float = config.SIM_SPIKE_CHANCE,
        max_samples: int | None = None,
    ) -> None:
        super().__init__()
        if rate_hz <= 0:
            raise ValueError("rate_hz must be positive")
        self._period = 1.0 / rate_hz
        self._rng = np.random.default_rng(seed)
        self._rng_lock = threading.Lock()
        self._baseline = baseline
        self._spike_chance = spike_chance
        self._max_samples = max_samples

    def next_value(self) -> float:
        with self._rng_lock:
            if self._rng.random() < self._spike_chance:
                value = self._rng.uniform(0.35, 0.95)
            else:
                value = self._rng.normal(self._baseline, 0.06)
        return float(np.clip(value, 0.0, 1.0))

    def _run(self, subscription: Subscription, resource: Any) -> None:
        sent = 0
        while not subscription.stopped:
            subscription.deliver(ProbabilitySample(value=self.next_value()))
            sent += 1
            if self._max_samples is not None and sent >= self._max_samples:
                raise SubscriptionLost("simulated stream exhausted")
            if subscription.wait(self._period):
                break


class LSLProbabilitySource(ThreadedProbabilitySource):
    """Reads channel 0 of an LSL stream as the probability value.

    Every subscription resolves and owns its own inlet.
    """

    name = "lsl"

    def __init__(
        self,
        stream_type: str = config.LSL_STREAM_TYPE,
        timeout: float = config.LSL_RESOLVE_TIMEOUT,
    ) -> None:
        super().__init__()
        self._stream_type = stream_type
        self._timeout = timeout

    def _open(self, subscription: Subscription) -> Any:
        import pylsl

        logger.info("Resolving LSL stream of type '%s'...", self._stream_type)
        streams = pylsl.resolve_byprop("type", self._stream_type, timeout=self._timeout)
        if not streams:
            raise SubscriptionLost(
                f"No LSL stream of type '{self._stream_type}' found. Is the classifier publishing?"
            )
        inlet = pylsl.StreamInlet(streams[0], max_chunklen=8)
        logger.info("Connected to LSL probability stream: %s", streams[0].name())
        return inlet

    def _run(self, subscription: Subscription, resource: Any) -> None:
        inlet = resource
        try:
            while not subscription.stopped:
                try:
                    samples, timestamps = inlet.pull_chunk(timeout=0.05, max_samples=32)
                except Exception as exc:
                    raise SubscriptionLost(f"LSL read failed: {exc}") from exc
                if not timestamps:
                    continue
                now = time.monotonic()
                for sample in samples:
                    subscription.deliver(ProbabilitySample(value=float(sample[0]), timestamp=now))
        finally:
            inlet.close_stream()
