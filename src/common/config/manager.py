from enum import Enum
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException
from pathlib import Path
from typing import Any, Type, TypeVar, Union

from conf.config_models import ControlConfig
from ..exceptions import ConfigurationError
from ...control.domain import QueueOrder, OverflowPolicy

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, key: str) -> E:
    """Resolves a config value (enum member or its name) into an enum member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[str(value).upper()]
    except KeyError:
        valid = ", ".join(m.name for m in enum_cls)
        raise ConfigurationError(f"Invalid value for {key}: {value!r} (expected one of {valid})")


def validate_control_config(cfg: Union[ControlConfig, DictConfig]) -> None:
    """Checks cross-field constraints the schema types cannot express."""
    timing = cfg.timing
    if timing.min_cycle_us <= 0:
        raise ConfigurationError(f"timing.min_cycle_us must be positive, got {timing.min_cycle_us}")
    if timing.max_cycle_us < timing.min_cycle_us:
        raise ConfigurationError(
            f"timing.max_cycle_us ({timing.max_cycle_us}) is smaller than "
            f"timing.min_cycle_us ({timing.min_cycle_us})"
        )
    if timing.tick_interval_s <= 0:
        raise ConfigurationError(f"timing.tick_interval_s must be positive, got {timing.tick_interval_s}")

    queue = cfg.queue
    parse_enum(QueueOrder, queue.order, "queue.order")
    parse_enum(OverflowPolicy, queue.overflow, "queue.overflow")
    if queue.capacity is not None and queue.capacity <= 0:
        raise ConfigurationError(f"queue.capacity must be positive or null, got {queue.capacity}")
    if queue.drop_log_every <= 0:
        raise ConfigurationError(f"queue.drop_log_every must be positive, got {queue.drop_log_every}")

    if cfg.consumers < 0:
        raise ConfigurationError(f"consumers must be >= 0, got {cfg.consumers}")


class ConfigManager:
    """Centralizes loading and validation of control configuration"""
    
    def __init__(self, config_dir: Path = Path("conf")):
        self.config_dir = Path(config_dir)

    @staticmethod
    def resolve(raw: Union[dict, DictConfig]) -> DictConfig:
        """Merges raw values onto the ControlConfig schema and validates them."""
        try:
            cfg = OmegaConf.merge(OmegaConf.structured(ControlConfig), raw)
        except OmegaConfBaseException as e:
            raise ConfigurationError(f"Invalid control config: {e}") from e
        validate_control_config(cfg)
        return cfg
    
    def load_control_config(self, profile: str = "default") -> DictConfig:
        """Loads a control profile from conf/control/<profile>.yaml"""
        config_path = self.config_dir / "control" / f"{profile}.yaml"
        
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
        
        raw = OmegaConf.load(config_path)
        required_keys = ['queue', 'timing']
        for key in required_keys:
            if key not in raw:
                raise ConfigurationError(f"Missing required config key: {key}")
        
        return self.resolve(raw)
