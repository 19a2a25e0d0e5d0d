# Task board — configuration
# Override order-key tuning, seed data and server address via taskboard.yaml.

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .resolver import DEFAULT_ORDER_PRECISION, MIN_ORDER_PRECISION

CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "taskboard.yaml"
LOG_FORMAT = "%(asctime)s [{name}] %(levelname)s: %(message)s"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for the board engine and server."""

    # Order keys
    order_precision: int = DEFAULT_ORDER_PRECISION  # significant digits before a rebalance
    order_baseline: float = 1                       # key for the first task in an empty column
    order_step: float = 1                           # spacing at the ends and after rebalance

    # Mock dataset loaded at startup ("" = start empty)
    seed_path: str = ""

    # Logging
    log_level: str = "INFO"

    # HTTP adapter
    host: str = "127.0.0.1"
    port: int = 3000

    def resolve_paths(self, base: Optional[Path] = None):
        """Expand ~ and make seed_path relative to the config file."""
        if self.seed_path:
            seed = Path(self.seed_path).expanduser()
            if not seed.is_absolute() and base is not None:
                seed = base / seed
            self.seed_path = str(seed)

    def validate(self) -> "BoardConfig":
        if not isinstance(self.order_precision, int) or self.order_precision < MIN_ORDER_PRECISION:
            raise ConfigError(
                f"order_precision must be an integer >= {MIN_ORDER_PRECISION}, "
                f"got {self.order_precision!r}"
            )
        if not isinstance(self.order_step, (int, float)) or self.order_step <= 0:
            raise ConfigError(f"order_step must be a positive number, got {self.order_step!r}")
        if not isinstance(self.order_baseline, (int, float)):
            raise ConfigError(f"order_baseline must be a number, got {self.order_baseline!r}")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Unknown log_level: {self.log_level!r}")
        if not isinstance(self.port, int) or not (0 < self.port < 65536):
            raise ConfigError(f"port out of range: {self.port!r}")
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML, falling back to defaults.

        Lookup: explicit path, then $TASKBOARD_CONFIG, then config/taskboard.yaml.
        """
        env = os.environ.get("TASKBOARD_CONFIG")
        cfg_path = Path(path) if path else Path(env) if env else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Could not read {cfg_path}, using defaults: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths(cfg_path.parent)
        return cfg.validate()


def setup_logging(level: str = "INFO", name: str = "taskboard") -> None:
    """Configure root logging on stdout."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT.format(name=name),
        handlers=[logging.StreamHandler(sys.stdout)],
    )
