"""Arena configuration loader."""

import importlib
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from corehill.core.simulator import Simulator
from corehill.hills import DEFAULT_HILL, is_valid_hill

DEFAULT_SIMULATOR = "corehill.core.simulator:MockSimulator"


@dataclass
class StorageConfig:
    backend: str = "memory"  # "memory", "mongo"
    mongo_uri_env: str = "COREHILL_MONGO_URI"
    db_name: str = "corehill"


@dataclass
class ReplayConfig:
    target_seconds: float = 15.0
    fps: int = 60
    max_frame_skip: int = 10


@dataclass
class LoggingConfig:
    level: str = "INFO"
    battle_log_dir: Path | None = None


@dataclass
class ArenaConfig:
    name: str
    default_hill: str = DEFAULT_HILL
    seed: int | None = None  # master seed for reproducible batch runs
    simulator: str = DEFAULT_SIMULATOR
    storage: StorageConfig = field(default_factory=StorageConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_simulator(path: str) -> Simulator:
    """Instantiate a simulator backend from a ``module:attribute`` path."""
    module_name, sep, attr = path.partition(":")
    if not sep or not attr:
        raise ValueError(f"Simulator must be 'module:attribute', got {path!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    simulator = factory()
    if not isinstance(simulator, Simulator):
        raise ValueError(f"{path!r} did not produce a Simulator")
    return simulator


def load_config(path: Path) -> ArenaConfig:
    """Load arena config from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    a = raw.get("arena", {})
    default_hill = str(a.get("default_hill", DEFAULT_HILL))
    if not is_valid_hill(default_hill):
        raise ValueError(f"Unknown default_hill: {default_hill!r}")

    s = raw.get("storage", {})
    backend = s.get("backend", "memory")
    if backend not in ("memory", "mongo"):
        raise ValueError(f"Unsupported storage backend: {backend!r}")

    r = raw.get("replay", {})
    lg = raw.get("logging", {})
    log_dir = lg.get("battle_log_dir")

    return ArenaConfig(
        name=a.get("name", "corehill"),
        default_hill=default_hill,
        seed=a.get("seed"),
        simulator=raw.get("simulator", DEFAULT_SIMULATOR),
        storage=StorageConfig(
            backend=backend,
            mongo_uri_env=s.get("mongo_uri_env", "COREHILL_MONGO_URI"),
            db_name=s.get("db_name", "corehill"),
        ),
        replay=ReplayConfig(
            target_seconds=float(r.get("target_seconds", 15.0)),
            fps=int(r.get("fps", 60)),
            max_frame_skip=int(r.get("max_frame_skip", 10)),
        ),
        logging=LoggingConfig(
            level=str(lg.get("level", "INFO")).upper(),
            battle_log_dir=Path(log_dir) if log_dir else None,
        ),
    )
