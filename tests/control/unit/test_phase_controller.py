import logging
import random
import threading
import time
import pytest
from unittest.mock import MagicMock
from conf.config_models import ControlConfig
from src.control.application.phase_controller import PhaseController
from src.control.domain import Phase, QueueOrder
from src.control.infrastructure.message_queue import BlockingQueue
from src.common.exceptions import ControlError, QueueShutDownError, ReceiveTimeoutError
from src.common.schemas import PhaseStatus
from tests.fakes import FakeClock


def test_initial_state(controller):
    assert controller.get_current_phase() is Phase.RED
    assert controller.queue.empty()
    assert controller.queue.order is QueueOrder.LIFO

def test_every_tick_publishes(controller, fake_clock):
    for _ in range(3):
        fake_clock.advance_us(1000)
        controller.tick()

    assert controller.queue.qsize() == 3
    assert controller.get_metrics().ticks == 3
    assert controller.get_metrics().flips == 0

def test_flip_at_drawn_target(controller, fake_clock, fixed_rng):
    controller.tick()  # starts the cycle at t=0

    fake_clock.advance_us(4_000_000)
    assert controller.tick() is Phase.RED

    fake_clock.advance_us(499_999)
    assert controller.tick() is Phase.RED

    fake_clock.advance_us(1)
    assert controller.tick() is Phase.GREEN
    assert controller.get_current_phase() is Phase.GREEN
    assert controller.queue.receive() is Phase.GREEN
    assert all(bounds == (4_000_000, 6_000_000) for bounds in fixed_rng.calls)

def test_clock_advance_without_tick_does_not_flip(controller, fake_clock):
    controller.tick()
    fake_clock.advance_us(5_000_000)
    # No loop iteration yet, so no flip recorded
    assert controller.get_current_phase() is Phase.RED

    controller.tick()
    assert controller.get_current_phase() is Phase.GREEN
    assert controller.queue.receive() is Phase.GREEN

def test_flips_back_to_red(controller, fake_clock):
    controller.tick()
    fake_clock.advance_us(4_500_000)
    controller.tick()
    fake_clock.advance_us(4_500_000)
    controller.tick()

    assert controller.get_current_phase() is Phase.RED
    assert controller.get_metrics().flips == 2

def test_duration_resets_after_flip(controller, fake_clock):
    controller.tick()
    fake_clock.advance_us(6_000_000)
    controller.tick()  # flips with 1.5s of overshoot, which is discarded
    assert controller.get_status().elapsed_us == 0

    fake_clock.advance_us(4_000_000)
    controller.tick()
    assert controller.get_current_phase() is Phase.GREEN

def test_new_target_drawn_after_each_flip(fake_clock):
    rng = MagicMock()
    rng.randint.side_effect = [4_000_000, 5_000_000, 6_000_000]
    ctrl = PhaseController(clock=fake_clock, rng=rng)

    ctrl.tick()
    assert ctrl.get_status().cycle_target_us == 4_000_000

    fake_clock.advance_us(4_000_000)
    ctrl.tick()
    assert ctrl.get_status().cycle_target_us == 5_000_000

    fake_clock.advance_us(4_999_000)
    ctrl.tick()
    assert ctrl.get_current_phase() is Phase.GREEN

    fake_clock.advance_us(1000)
    ctrl.tick()
    assert ctrl.get_current_phase() is Phase.RED
    assert ctrl.get_status().cycle_target_us == 6_000_000
    assert rng.randint.call_count == 3

def test_flip_intervals_within_cycle_bounds():
    clock = FakeClock()
    changes = []
    ctrl = PhaseController(clock=clock, rng=random.Random(1234), on_flip=changes.append)

    ctrl.tick()
    for _ in range(30_000):  # 30 simulated seconds at 1 ms per tick
        clock.advance_us(1000)
        ctrl.tick()

    assert 5 <= len(changes) <= 7
    for change in changes:
        assert 4_000_000 <= change.elapsed_us <= 6_000_000
        assert change.current is change.previous.flipped()
        assert 4_000_000 <= change.next_target_us <= 6_000_000

def test_wait_for_green_returns_on_buffered_green(controller, fake_clock):
    controller.tick()
    fake_clock.advance_us(4_500_000)
    controller.tick()
    assert controller.get_current_phase() is Phase.GREEN

    controller.wait_for_green(timeout=0.5)
    assert controller.get_metrics().greens_received == 1

def test_wait_for_green_discards_red(controller):
    controller.queue.send(Phase.GREEN)
    controller.queue.send(Phase.RED)
    controller.queue.send(Phase.RED)

    controller.wait_for_green(timeout=0.5)

    metrics = controller.get_metrics()
    assert metrics.values_discarded == 2
    assert metrics.greens_received == 1
    assert controller.queue.empty()

def test_wait_for_green_accepts_stale_green(controller):
    # A GREEN left from an earlier cycle still releases the waiter
    controller.queue.send(Phase.GREEN)
    assert controller.get_current_phase() is Phase.RED
    controller.wait_for_green(timeout=0.5)

def test_wait_for_green_times_out_on_empty_queue(controller):
    with pytest.raises(ReceiveTimeoutError):
        controller.wait_for_green(timeout=0.05)

def test_wait_for_green_times_out_on_red_only(controller):
    for _ in range(5):
        controller.queue.send(Phase.RED)
    with pytest.raises(ReceiveTimeoutError):
        controller.wait_for_green(timeout=0.05)
    assert controller.get_metrics().values_discarded == 5

def test_wait_for_green_released_by_stop(controller):
    errors = []

    def waiter():
        try:
            controller.wait_for_green()
        except QueueShutDownError as e:
            errors.append(e)

    t = threading.Thread(target=waiter, daemon=True)
    t.start()
    time.sleep(0.05)
    controller.stop(timeout=1.0)
    t.join(timeout=1.0)

    assert not t.is_alive()
    assert len(errors) == 1

def test_invalid_cycle_bounds():
    with pytest.raises(ControlError):
        PhaseController(min_cycle_us=6_000_000, max_cycle_us=4_000_000)
    with pytest.raises(ControlError):
        PhaseController(min_cycle_us=0)

def test_custom_queue_is_used(fake_clock, fixed_rng):
    queue = BlockingQueue(order=QueueOrder.FIFO)
    ctrl = PhaseController(queue=queue, clock=fake_clock, rng=fixed_rng)
    ctrl.tick()
    assert queue.qsize() == 1

def test_from_config_defaults(fake_clock):
    ctrl = PhaseController.from_config(ControlConfig(), clock=fake_clock)
    assert ctrl.min_cycle_us == 4_000_000
    assert ctrl.max_cycle_us == 6_000_000
    assert ctrl.tick_interval == 0.001
    assert ctrl.queue.order is QueueOrder.LIFO
    assert ctrl.queue.capacity is None

def test_from_config_seed_is_deterministic():
    cfg = ControlConfig()
    cfg.timing.seed = 7
    a = PhaseController.from_config(cfg, clock=FakeClock())
    b = PhaseController.from_config(cfg, clock=FakeClock())

    a.tick()
    b.tick()
    assert a.get_status().cycle_target_us == b.get_status().cycle_target_us

def test_get_status(controller, fake_clock):
    controller.tick()
    fake_clock.advance_us(1_000_000)
    controller.tick()

    status = controller.get_status()
    assert isinstance(status, PhaseStatus)
    assert status.controller_id == controller.id
    assert status.phase == "RED"
    assert status.running is False
    assert status.queue_size == 2
    assert status.queue_order == "LIFO"
    assert status.cycle_target_us == 4_500_000
    assert status.elapsed_us == 1_000_000
    assert status.ticks == 2
    assert status.flips == 0
    assert status.dropped == 0

def test_metrics_to_dict(controller):
    controller.tick()
    data = controller.get_metrics().to_dict()
    assert data["ticks"] == 1
    assert set(data) == {"ticks", "flips", "greens_received", "values_discarded", "uptime_seconds"}

def test_loop_stops_when_sleeper_reports_stop(fake_clock, fixed_rng):
    sleeper = MagicMock(side_effect=[False, False, True])
    ctrl = PhaseController(clock=fake_clock, rng=fixed_rng, sleep=sleeper)

    thread = ctrl.simulate()
    thread.join(timeout=1.0)

    assert not thread.is_alive()
    assert ctrl.get_metrics().ticks == 3
    sleeper.assert_called_with(0.001)

def test_loop_error_is_logged(fake_clock, fixed_rng, caplog):
    ctrl = PhaseController(clock=fake_clock, rng=fixed_rng, sleep=MagicMock(return_value=False))
    ctrl.queue.send = MagicMock(side_effect=RuntimeError("boom"))

    thread = ctrl.simulate()
    thread.join(timeout=1.0)

    assert not thread.is_alive()
    assert any("phase loop failed: boom" in r.getMessage() for r in caplog.records)

class SlowFirstReadClock:
    """
    Returns 0 on the first read. The second read waits (up to 0.2s) for a
    third read to start, then returns 1 ms; later reads return 2 ms.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reads = 0
        self._later_read = threading.Event()

    def __call__(self) -> int:
        with self._lock:
            self._reads += 1
            read = self._reads
        if read == 1:
            return 0
        if read == 2:
            self._later_read.wait(timeout=0.2)
            return 1_000_000
        self._later_read.set()
        return 2_000_000

def test_concurrent_ticks_never_accumulate_negative_time(fixed_rng):
    ctrl = PhaseController(clock=SlowFirstReadClock(), rng=fixed_rng)
    ctrl.tick()  # reads t=0

    first = threading.Thread(target=ctrl.tick, daemon=True)
    first.start()
    time.sleep(0.05)
    second = threading.Thread(target=ctrl.tick, daemon=True)
    second.start()
    first.join(timeout=1.0)
    second.join(timeout=1.0)

    # Readings are taken in order: 0 -> 1 ms -> 2 ms
    assert ctrl.get_status().elapsed_us == 2_000
    assert ctrl.get_metrics().ticks == 3

def test_stop_warns_when_threads_do_not_finish(controller, caplog):
    release = threading.Event()
    controller.start_thread(release.wait, "Stuck")
    try:
        with caplog.at_level(logging.INFO):
            assert controller.stop(timeout=0.05) is False

        messages = [r.getMessage() for r in caplog.records]
        assert any("failed to stop all threads" in m for m in messages)
        assert not any(m == f"Controller {controller.id} stopped" for m in messages)
    finally:
        release.set()
        controller.join_threads(timeout=1.0)

def test_stop_logs_info_when_clean(controller, caplog):
    with caplog.at_level(logging.INFO):
        assert controller.stop(timeout=1.0)
    assert any(r.getMessage() == f"Controller {controller.id} stopped" for r in caplog.records)
