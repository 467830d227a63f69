"""
Traffic light phase controller.
A background loop flips the phase between RED and GREEN after a random
4-6 s cycle and publishes the current phase to a blocking queue every tick.
"""
import random
import threading
import time
from typing import Callable, Optional, Union

from omegaconf import DictConfig

from conf.config_models import ControlConfig
from .traffic_object import TrafficObject
from ..domain import Phase, PhaseChange, QueueOrder, OverflowPolicy
from ..protocols import Clock, RandomSource, Sleeper
from ..infrastructure.message_queue import BlockingQueue
from ...common.config.manager import parse_enum, validate_control_config
from ...common.exceptions import ControlError, QueueShutDownError, ReceiveTimeoutError
from ...common.logging import setup_logger
from ...common.metrics import MetricsCollector, PhaseMetrics
from ...common.schemas import PhaseStatus

logger = setup_logger(__name__)

MIN_CYCLE_US = 4_000_000
MAX_CYCLE_US = 6_000_000
TICK_INTERVAL_S = 0.001


class PhaseController(TrafficObject):
    """
    Owns the current phase and the queue it is published to.

    Lifecycle: constructed RED; simulate() starts the phase loop thread;
    stop() ends it and shuts the queue down. A stopped controller cannot be
    restarted.
    """

    def __init__(
        self,
        queue: Optional[BlockingQueue[Phase]] = None,
        min_cycle_us: int = MIN_CYCLE_US,
        max_cycle_us: int = MAX_CYCLE_US,
        tick_interval: float = TICK_INTERVAL_S,
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        sleep: Optional[Sleeper] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        on_flip: Optional[Callable[[PhaseChange], None]] = None
    ):
        super().__init__()
        if min_cycle_us <= 0 or max_cycle_us < min_cycle_us:
            raise ControlError(f"Invalid cycle bounds: [{min_cycle_us}, {max_cycle_us}] us")

        self.queue: BlockingQueue[Phase] = queue if queue is not None else BlockingQueue()
        self.min_cycle_us = min_cycle_us
        self.max_cycle_us = max_cycle_us
        self.tick_interval = tick_interval
        self.metrics_collector = metrics_collector or MetricsCollector()
        self.on_flip = on_flip

        self._clock = clock or time.monotonic_ns
        # Instance-owned generator, seeded once here
        self._rng = rng or random.Random()
        self._sleep = sleep or self.stop_event.wait

        # Phase state, written by the loop thread only
        self._phase_lock = threading.Lock()
        self._current_phase = Phase.RED
        self._duration_us = 0
        self._cycle_target_us = 0
        self._prev_ns: Optional[int] = None

        self._loop_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, cfg: Union[ControlConfig, DictConfig], **kwargs) -> "PhaseController":
        """
        Builds a controller and its queue from a ControlConfig.
        Keyword arguments (clock, rng, sleep...) are passed through.
        """
        validate_control_config(cfg)
        queue = BlockingQueue(
            order=parse_enum(QueueOrder, cfg.queue.order, "queue.order"),
            capacity=cfg.queue.capacity,
            overflow=parse_enum(OverflowPolicy, cfg.queue.overflow, "queue.overflow"),
            drop_log_every=cfg.queue.drop_log_every
        )
        if "rng" not in kwargs and cfg.timing.seed is not None:
            kwargs["rng"] = random.Random(cfg.timing.seed)
        return cls(
            queue=queue,
            min_cycle_us=cfg.timing.min_cycle_us,
            max_cycle_us=cfg.timing.max_cycle_us,
            tick_interval=cfg.timing.tick_interval_s,
            **kwargs
        )

    def get_current_phase(self) -> Phase:
        """Non-blocking snapshot of the current phase."""
        with self._phase_lock:
            return self._current_phase

    def simulate(self) -> threading.Thread:
        """
        Starts the phase loop in a background thread and returns it.
        Calling it again while the loop runs is a no-op.
        """
        if self._loop_thread is not None and self._loop_thread.is_alive():
            logger.warning(f"Controller {self.id} already running, ignoring simulate()")
            return self._loop_thread
        if self.stop_event.is_set():
            raise ControlError(f"Controller {self.id} was stopped and cannot be restarted")

        self._begin_cycle()
        self._loop_thread = self.start_thread(self._cycle_through_phases, "PhaseLoop")
        logger.info(f"Controller {self.id} started (phase={self.get_current_phase().value})")
        return self._loop_thread

    def wait_for_green(self, timeout: Optional[float] = None) -> None:
        """
        Consumes phases from the queue until a GREEN one arrives.
        A GREEN left over from an earlier cycle also releases the caller.

        :param timeout: Overall seconds to wait. None waits indefinitely.
        :raises ReceiveTimeoutError: if no GREEN arrives in time
        :raises QueueShutDownError: if the controller is stopped meanwhile
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            phase = self.queue.receive(timeout=remaining)
            is_green = phase is Phase.GREEN
            self.metrics_collector.record_received(is_green)
            if is_green:
                return
            if deadline is not None and time.monotonic() >= deadline:
                raise ReceiveTimeoutError(f"No GREEN phase received within {timeout:.3f}s")

    def tick(self) -> Phase:
        """
        Runs one loop iteration: accumulate elapsed time, flip if the cycle
        target is reached, publish the current phase. Returns the phase sent.
        """
        change = None
        # Clock read and _prev_ns update stay under the lock so concurrent
        # callers never subtract a newer reading from an older one
        with self._phase_lock:
            now = self._clock()
            if self._prev_ns is None:
                self._reset_cycle(now)
            self._duration_us += (now - self._prev_ns) // 1000
            self._prev_ns = now
            if self._duration_us >= self._cycle_target_us:
                previous = self._current_phase
                self._current_phase = previous.flipped()
                elapsed_total = self._duration_us
                self._duration_us = 0
                self._cycle_target_us = self._draw_target()
                change = PhaseChange(
                    previous=previous,
                    current=self._current_phase,
                    elapsed_us=elapsed_total,
                    next_target_us=self._cycle_target_us
                )
            phase = self._current_phase

        self.queue.send(phase)
        self.metrics_collector.record_tick()

        if change is not None:
            self.metrics_collector.record_flip()
            logger.debug(
                f"Controller {self.id}: {change.previous.value} -> {change.current.value} "
                f"after {change.elapsed_us / 1e6:.3f}s (next in {change.next_target_us / 1e6:.3f}s)"
            )
            if self.on_flip:
                self.on_flip(change)

        return phase

    def stop(self, timeout: float = 2.0) -> bool:
        """
        Stops the phase loop, shuts the queue down (releasing blocked
        consumers with QueueShutDownError) and joins the loop thread.
        """
        self.stop_event.set()
        self.queue.shutdown()
        stopped = self.join_threads(timeout=timeout)
        if stopped:
            logger.info(f"Controller {self.id} stopped")
        else:
            logger.warning(f"Controller {self.id} failed to stop all threads within {timeout:.1f}s")
        return stopped

    def get_status(self) -> PhaseStatus:
        metrics = self.metrics_collector.get_metrics()
        with self._phase_lock:
            phase = self._current_phase
            duration_us = self._duration_us
            target_us = self._cycle_target_us
        return PhaseStatus(
            controller_id=self.id,
            phase=phase.value,
            running=self._loop_thread is not None and self._loop_thread.is_alive(),
            queue_size=self.queue.qsize(),
            queue_order=self.queue.order.value,
            cycle_target_us=target_us,
            elapsed_us=duration_us,
            ticks=metrics.ticks,
            flips=metrics.flips,
            dropped=self.queue.dropped
        )

    def get_metrics(self) -> PhaseMetrics:
        return self.metrics_collector.get_metrics()

    def _begin_cycle(self):
        with self._phase_lock:
            self._reset_cycle(self._clock())

    def _reset_cycle(self, now: int):
        # Caller holds _phase_lock
        self._prev_ns = now
        self._duration_us = 0
        self._cycle_target_us = self._draw_target()

    def _draw_target(self) -> int:
        return self._rng.randint(self.min_cycle_us, self.max_cycle_us)

    def _cycle_through_phases(self):
        """Phase loop, runs until stop()."""
        try:
            while not self.stop_event.is_set():
                self.tick()
                if self._sleep(self.tick_interval):
                    break
        except QueueShutDownError:
            logger.debug(f"Controller {self.id}: queue shut down, leaving phase loop")
        except Exception as e:
            logger.error(f"Controller {self.id} phase loop failed: {e}", exc_info=True)
        finally:
            logger.debug(f"Controller {self.id} phase loop stopped")
