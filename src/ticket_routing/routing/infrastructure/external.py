"""
Routing External Integrations
=============================

- YAML routing weights file with hot reload (watchdog)
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from ticket_routing.core import ConfigurationException
from ticket_routing.routing.domain import RoutingWeights
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for routing config file changes."""

    def __init__(self, config_manager: "RoutingConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info(f"Routing config file changed: {event.src_path}")
            self.config_manager.reload()


class RoutingConfigManager:
    """
    Thread-safe routing weights manager with hot-reload support.

    A reload that fails to parse or validate keeps the previous weights.
    """

    def __init__(self):
        self._weights: Optional[RoutingWeights] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> RoutingWeights:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        try:
            weights = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid routing config {self._path}: {e}",
                details={"path": str(self._path)}
            )
        with self._lock:
            self._weights = weights
        return weights

    def _load_from_file(self, path: Path) -> RoutingWeights:
        if not path.exists():
            logger.warning(f"Routing config file not found: {path}, using defaults")
            return RoutingWeights()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return RoutingWeights(**data)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_weights = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(f"Failed to reload routing config: {e}")
            return False

        with self._lock:
            self._weights = new_weights
        logger.info("Routing configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching the configuration file for changes.

        Skipped when the file does not exist or the platform has no file
        notification support.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                f"Config file doesn't exist, skipping file watch: {self._path}. "
                "Using default routing weights."
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching routing config file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static config: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def weights(self) -> RoutingWeights:
        with self._lock:
            if self._weights is None:
                raise RuntimeError("Routing configuration not loaded")
            return self._weights

    def get_weights(self) -> RoutingWeights:
        """Callable form of ``weights`` for the routing scorer."""
        return self.weights
