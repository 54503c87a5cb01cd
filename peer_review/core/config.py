import copy
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

DEFAULT_BASE_URL = "http://localhost:8080/api"
BASE_URL_ENV_VAR = "PEER_REVIEW_API_BASE_URL"

DEFAULT_CONFIG: Dict[str, Any] = {
    "backend": {
        "base_url": DEFAULT_BASE_URL,
        "timeout": 10,
    },
    "database": {
        "path": "~/.peer_review/peer_review.db",
    },
    "snapshot": {
        "key": "peerReview_platformData",
    },
    "sync": {
        "refresh_interval": 300,  # seconds
    },
    "api": {
        "enabled": False,
        "host": "127.0.0.1",
        "port": 8765,
    },
    "logging": {
        "level": "INFO",
        "file": "~/.peer_review/peer_review.log",
    },
}

# Environment variables that win over the file: name -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    BASE_URL_ENV_VAR: ("backend", "base_url"),
}

_ENV_LINE = re.compile(r'^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$')
_ENV_REF = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}|^\$([A-Za-z_][A-Za-z0-9_]*)$')


def read_env_file(path: Path) -> Dict[str, str]:
    """KEY=value pairs from a .env file; blank lines and # comments are skipped."""
    values: Dict[str, str] = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        match = _ENV_LINE.match(line)
        if match:
            key, value = match.groups()
            values[key] = value.strip().strip('"').strip("'")
    return values


def substitute_env_vars(data: Any) -> Any:
    """Replace ${VAR} (anywhere in a string) and a bare $VAR value; unknown names are left as written."""
    if isinstance(data, dict):
        return {key: substitute_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    if isinstance(data, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), m.group(0)), data)
    return data


def diff_config(old: Dict[str, Any], new: Dict[str, Any], prefix: str = "") -> Iterator[str]:
    """Human readable lines for every added, removed or changed key."""
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}.{key}" if prefix else str(key)
        if key not in new:
            yield f"removed {path}: {old[key]}"
        elif key not in old:
            yield f"added {path}: {new[key]}"
        elif isinstance(old[key], dict) and isinstance(new[key], dict):
            yield from diff_config(old[key], new[key], path)
        elif old[key] != new[key]:
            yield f"changed {path}: {old[key]} -> {new[key]}"


class ConfigChangeHandler(FileSystemEventHandler):
    """Reloads the config when its file is written; bursts of events inside the cooldown collapse into one."""

    def __init__(self, config: "Config", cooldown: float = 1.0):
        self.config = config
        self.cooldown = cooldown
        self._last_reload = 0.0

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return
        if Path(event.src_path) != self.config.config_file:
            return
        now = time.time()
        if now - self._last_reload < self.cooldown:
            return
        self._last_reload = now
        try:
            self.config.reload()
        except Exception as e:
            logging.error(f"Error handling config change: {e}")


class Config:
    """
    YAML settings for the sync app.

    The file is created with defaults on first run. Sections present in the file are merged
    over the defaults key by key, so a file holding only ``backend.timeout`` still gets every
    other setting. Values may reference environment variables, which can also come from a
    ``.env`` file beside the config (or in the working directory). When ``watch`` is on the
    file is reloaded on change and registered callbacks get the new data.
    """

    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        self.change_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self.observer: Optional[Observer] = None
        self._reloading = False
        self.data: Dict[str, Any] = {}

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
        else:
            self.config_file = Path.home() / ".peer_review" / "config.yaml"
        self.config_dir = self.config_file.parent
        logging.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._write_defaults_if_missing()
        self.data = self._read() or copy.deepcopy(DEFAULT_CONFIG)

        if watch:
            self._start_watching()

    def _start_watching(self) -> None:
        self.observer = Observer()
        self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
        self.observer.start()
        logging.info(f"Watching {self.config_file} for changes")

    def register_change_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Re-read the file (keeping the current settings if it is broken) and notify callbacks."""
        if self._reloading:
            return
        self._reloading = True
        try:
            # Editors often write in several steps
            time.sleep(0.1)
            new_data = self._read()
            if new_data is None:
                logging.info("Keeping previous configuration")
                new_data = self.data
            for line in diff_config(self.data, new_data):
                logging.info(f"Config {line}")
            self.data = new_data

            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logging.error(f"Error in config change callback: {e}")
        finally:
            self._reloading = False

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _write_defaults_if_missing(self) -> None:
        if self.config_file.exists():
            return
        logging.info(f"Creating default config file: {self.config_file}")
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))

    def _load_env_file(self) -> None:
        """Export variables from the first .env found; the real environment wins."""
        env_file = next(
            (path for path in (self.config_dir / ".env", Path.cwd() / ".env") if path.is_file()),
            None,
        )
        if env_file is None:
            return
        try:
            values = read_env_file(env_file)
        except OSError as e:
            logging.warning(f"Error loading .env file {env_file}: {e}")
            return
        for key, value in values.items():
            os.environ.setdefault(key, value)
        logging.info(f"Loaded {len(values)} variable(s) from {env_file}")

    def _read(self) -> Optional[Dict[str, Any]]:
        """Parsed settings merged over the defaults, or None when the file is unusable."""
        try:
            with open(self.config_file) as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Error loading config: {e}")
            return None
        if not isinstance(loaded, dict):
            logging.error(f"Invalid config format in {self.config_file}: root must be a mapping")
            return None

        data = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in substitute_env_vars(loaded).items():
            if isinstance(values, dict) and isinstance(data.get(section), dict):
                data[section].update(values)
            else:
                data[section] = values

        for env_var, (section, key) in ENV_OVERRIDES.items():
            if os.environ.get(env_var):
                data.setdefault(section, {})[key] = os.environ[env_var]

        logging_config = data.get("logging")
        if isinstance(logging_config, dict) and logging_config.get("file"):
            logging_config["file"] = os.path.expanduser(logging_config["file"])
        return data

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Read one value from a config section"""
        values = self.data.get(section)
        if not isinstance(values, dict):
            return default
        return values.get(key, default)
