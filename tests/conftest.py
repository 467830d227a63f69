import pytest
from src.control.application.phase_controller import PhaseController
from tests.fakes import FakeClock, FixedRandom

@pytest.fixture
def fake_clock():
    return FakeClock()

@pytest.fixture
def fixed_rng():
    return FixedRandom(4_500_000)

@pytest.fixture
def controller(fake_clock, fixed_rng):
    ctrl = PhaseController(clock=fake_clock, rng=fixed_rng)
    yield ctrl
    ctrl.stop(timeout=1.0)
