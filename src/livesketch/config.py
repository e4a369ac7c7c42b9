"""
livesketch Configuration.

Configuration dataclass with environment variable support, plus a loader for
an optional ``livesketch.json`` placed next to the sketch.

Supported settings in livesketch.json:
{
    "reload_frames": 30,        // -> LIVESKETCH_RELOAD_FRAMES
    "verbose": false,           // -> LIVESKETCH_VERBOSE
    "globalize": true,          // -> LIVESKETCH_GLOBALIZE
    "sigil": "_g.",             // -> LIVESKETCH_SIGIL
    "init_event": "setup",      // -> LIVESKETCH_INIT_EVENT
    "width": 500,               // -> LIVESKETCH_WIDTH
    "height": 500,              // -> LIVESKETCH_HEIGHT
    "fps": 60,                  // -> LIVESKETCH_FPS
    "log_dir": ".livesketch",   // -> LIVESKETCH_LOG_DIR
    "debug_log": ""             // -> LIVESKETCH_DEBUG_LOG
}

Environment variables always take precedence over config file values.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

from .events import EVENT_NAMES, SETUP
from .logging_config import configure_logger_for_debug_trace, ensure_reload_trace_logger_configured

logger = configure_logger_for_debug_trace(__name__)


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_RELOAD_FRAMES = 30
DEFAULT_INITIAL_WIDTH = 500
DEFAULT_INITIAL_HEIGHT = 500
DEFAULT_FPS = 60.0
DEFAULT_SIGIL = "_g."

CONFIG_FILE = "livesketch.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class SketchConfig:
    """Configuration for a live sketch.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a value-object.
    ::: This is serializable.

    Supports environment variables:
    - LIVESKETCH_RELOAD_FRAMES: Frames between file change checks (default: 30)
    - LIVESKETCH_VERBOSE: Print diagnostics to the console (default: false)
    - LIVESKETCH_GLOBALIZE: Rewrite top-level variables into sketch state (default: true)
    - LIVESKETCH_SIGIL: Prefix inserted before globalized identifiers (default: _g.)
    - LIVESKETCH_INIT_EVENT: Event whose edits force a full reset (default: setup)
    - LIVESKETCH_WIDTH / LIVESKETCH_HEIGHT: Initial canvas size (default: 500x500)
    - LIVESKETCH_FPS: Target frame rate of the headless loop (default: 60)
    """

    reload_interval_frames: int = field(default_factory=lambda: int(os.environ.get(
        "LIVESKETCH_RELOAD_FRAMES", DEFAULT_RELOAD_FRAMES
    )))
    verbose: bool = field(default_factory=lambda: _env_bool("LIVESKETCH_VERBOSE", False))

    # Globalizer
    globalize: bool = field(default_factory=lambda: _env_bool("LIVESKETCH_GLOBALIZE", True))
    sigil: str = field(default_factory=lambda: os.environ.get("LIVESKETCH_SIGIL", DEFAULT_SIGIL))

    # Reload policy
    init_event: str = field(default_factory=lambda: os.environ.get("LIVESKETCH_INIT_EVENT", SETUP))
    event_names: FrozenSet[str] = EVENT_NAMES

    # Canvas
    width: int = field(default_factory=lambda: int(os.environ.get("LIVESKETCH_WIDTH", DEFAULT_INITIAL_WIDTH)))
    height: int = field(default_factory=lambda: int(os.environ.get("LIVESKETCH_HEIGHT", DEFAULT_INITIAL_HEIGHT)))
    fps: float = field(default_factory=lambda: float(os.environ.get("LIVESKETCH_FPS", DEFAULT_FPS)))

    @property
    def state_name(self) -> str:
        """Name the globalized sketch state is bound to in the namespace."""
        return self.sigil.rstrip(".")

    def validate(self) -> list[str]:
        """Validate configuration and return list of warnings."""
        warnings = []

        if self.reload_interval_frames < 1:
            warnings.append(
                f"Reload interval {self.reload_interval_frames} frames is invalid - checking every frame"
            )
            self.reload_interval_frames = 1

        if not self.sigil.endswith(".") or not self.state_name.isidentifier():
            warnings.append(f"Sigil {self.sigil!r} must be an identifier followed by '.' - using {DEFAULT_SIGIL!r}")
            self.sigil = DEFAULT_SIGIL

        if self.init_event not in self.event_names:
            warnings.append(f"Init event {self.init_event!r} is not a recognised event")

        if self.width <= 0 or self.height <= 0:
            warnings.append(f"Canvas size {self.width}x{self.height} is invalid")

        if self.fps <= 0:
            warnings.append(f"Frame rate {self.fps} is invalid - using {DEFAULT_FPS}")
            self.fps = DEFAULT_FPS

        return warnings

    @classmethod
    def from_env(cls) -> "SketchConfig":
        """Create configuration from environment variables."""
        return cls()

    @classmethod
    def for_testing(cls, reload_interval_frames: int = 1) -> "SketchConfig":
        """Create configuration for tests: check every frame, quiet console."""
        return cls(
            reload_interval_frames=reload_interval_frames,
            verbose=False,
            globalize=True,
            sigil=DEFAULT_SIGIL,
            init_event=SETUP,
            width=DEFAULT_INITIAL_WIDTH,
            height=DEFAULT_INITIAL_HEIGHT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reload_interval_frames": self.reload_interval_frames,
            "verbose": self.verbose,
            "globalize": self.globalize,
            "sigil": self.sigil,
            "init_event": self.init_event,
            "event_names": sorted(self.event_names),
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
        }


class ConfigLoader:
    """
    Loads configuration from livesketch.json next to the sketch.

    ::: This is-in-layer Service-Layer.
    ::: This is a loader.
    ::: This is stateless.

    Priority: Environment variables > livesketch.json > defaults
    """

    # Mapping from livesketch.json keys to environment variable names
    CONFIG_KEY_TO_ENV = {
        "reload_frames": "LIVESKETCH_RELOAD_FRAMES",
        "verbose": "LIVESKETCH_VERBOSE",
        "globalize": "LIVESKETCH_GLOBALIZE",
        "sigil": "LIVESKETCH_SIGIL",
        "init_event": "LIVESKETCH_INIT_EVENT",
        "width": "LIVESKETCH_WIDTH",
        "height": "LIVESKETCH_HEIGHT",
        "fps": "LIVESKETCH_FPS",
        "log_dir": "LIVESKETCH_LOG_DIR",
        "debug_log": "LIVESKETCH_DEBUG_LOG",
    }

    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._config_path: Optional[Path] = None

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    def load(self, sketch_dir: Optional[Path] = None) -> bool:
        """
        Load configuration from livesketch.json.

        Args:
            sketch_dir: Directory holding the sketch. If None, uses CWD.

        Returns:
            True if a config file was found and loaded, False otherwise.
        """
        sketch_dir = Path(sketch_dir) if sketch_dir is not None else Path.cwd()
        config_path = sketch_dir / CONFIG_FILE
        if not config_path.exists():
            return False

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                self._config = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in {config_path}: {e}")
            return False
        except OSError as e:
            logger.warning(f"Error loading {config_path}: {e}")
            return False

        self._config_path = config_path
        logger.info(f"Loaded config from: {config_path}")
        self._apply_config()
        return True

    def _apply_config(self) -> None:
        """
        Apply config values as environment variables (only if not already set).
        This allows env vars to override config file values.
        """
        for config_key, env_var in self.CONFIG_KEY_TO_ENV.items():
            if config_key not in self._config:
                continue
            if os.getenv(env_var) is not None:
                continue

            value = self._config[config_key]
            # bool before int: bool is an int subclass
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (int, float)):
                value = str(value)
            elif isinstance(value, list):
                value = ",".join(str(v) for v in value)

            os.environ[env_var] = value
            logger.debug(f"{env_var}={value} (from {CONFIG_FILE})")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value."""
        return self._config.get(key, default)


def load_config(sketch_dir: Optional[Path] = None) -> SketchConfig:
    """Load livesketch.json (if present) and build a validated SketchConfig."""
    ConfigLoader().load(sketch_dir)
    # the file log follows log_dir and debug_log from livesketch.json
    ensure_reload_trace_logger_configured()
    config = SketchConfig.from_env()
    for warning in config.validate():
        logger.warning(warning)
    return config


__all__ = [
    "SketchConfig",
    "ConfigLoader",
    "load_config",
    "CONFIG_FILE",
    "DEFAULT_RELOAD_FRAMES",
    "DEFAULT_INITIAL_WIDTH",
    "DEFAULT_INITIAL_HEIGHT",
    "DEFAULT_FPS",
    "DEFAULT_SIGIL",
]
