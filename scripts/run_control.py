import os
import sys
import time
import hydra
from omegaconf import DictConfig, OmegaConf

# Add src to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.common.config.manager import ConfigManager
from src.common.exceptions import QueueShutDownError
from src.common.logging import setup_logger, set_level
from src.control.application.phase_controller import PhaseController

logger = setup_logger("run_control")


def consumer_loop(controller: PhaseController, name: str):
    """Simulates a vehicle that crosses every time the light turns green."""
    crossings = 0
    try:
        while not controller.stop_event.is_set():
            controller.wait_for_green()
            crossings += 1
            logger.info(f"{name} crossed on GREEN (#{crossings})")
            # Time spent crossing the intersection
            controller.stop_event.wait(1.0)
    except QueueShutDownError:
        pass
    logger.info(f"{name} finished after {crossings} crossings")
    return crossings


@hydra.main(version_base=None, config_path="../conf", config_name="config")
def main(cfg: DictConfig):
    control_cfg = ConfigManager.resolve(cfg.control)
    print(f"Configuration:\n{OmegaConf.to_yaml(control_cfg)}")

    set_level("src.control", control_cfg.log_level)
    set_level("run_control", control_cfg.log_level)

    controller = PhaseController.from_config(control_cfg)
    controller.simulate()

    for i in range(control_cfg.consumers):
        controller.start_thread(
            lambda name=f"vehicle-{i}": consumer_loop(controller, name),
            "Vehicle"
        )

    print(f"\nRunning for {control_cfg.run_seconds:.1f}s. Press Ctrl+C to exit.")
    last_phase = None
    deadline = time.monotonic() + control_cfg.run_seconds
    try:
        while time.monotonic() < deadline:
            phase = controller.get_current_phase()
            if phase is not last_phase:
                print(f"Light is {phase.value}")
                last_phase = phase
            time.sleep(0.05)
    except KeyboardInterrupt:
        print("Interrupted by user.")
    finally:
        controller.stop()
        print(controller.get_status().model_dump_json(indent=2))


if __name__ == "__main__":
    main()
