import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

import yaml


class ConfigLoader:
    def __init__(self, config_file="settings.yaml"):
        self.config = {}
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                self.config = yaml.safe_load(f) or {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigLoader":
        loader = cls(config_file=None)
        loader.config = dict(data)
        return loader

    def get(self, *keys, default=None):
        """
        Récupère une valeur dans la configuration.
        Si un chemin de clé n'existe pas :
          - lève une KeyError si aucun default n'est fourni
          - retourne le default sinon
        """
        ref = self.config
        for key in keys:
            if isinstance(ref, dict) and key in ref:
                ref = ref[key]
            else:
                if default is not None:
                    return default
                raise KeyError(f"Configuration key {' -> '.join(keys)} not found and no default provided.")
        return ref


@dataclass(frozen=True)
class NavigationSettings:
    """Tunables for the navigation core, read from the ``navigation`` section."""

    tile_size: float = 10.0
    origin: Tuple[float, float] = (0.0, 0.0)
    clearance_radius: int = 1
    heuristic: str = "manhattan"
    allow_corner_cutting: bool = True
    stuck_speed_threshold: float = 0.5
    stuck_timeout: float = 1.0
    stuck_replan_cooldown: float = 2.0
    arrival_radius: float = 0.5
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.tile_size <= 0:
            raise ValueError("tile_size must be positive")
        if self.clearance_radius < 0:
            raise ValueError("clearance_radius cannot be negative")
        if self.stuck_timeout < 0 or self.stuck_replan_cooldown < 0:
            raise ValueError("stuck timings cannot be negative")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def from_loader(cls, loader: ConfigLoader, section: str = "navigation") -> "NavigationSettings":
        raw = loader.get(section, default={})
        if not isinstance(raw, dict):
            raise ValueError(f"configuration section '{section}' must be a mapping")

        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ValueError(f"unknown navigation settings: {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for name, value in raw.items():
            if name == "origin":
                values[name] = (float(value[0]), float(value[1]))
            elif name in ("clearance_radius", "max_workers"):
                values[name] = int(value)
            elif name == "allow_corner_cutting":
                values[name] = bool(value)
            elif name == "heuristic":
                values[name] = str(value)
            else:
                values[name] = float(value)
        return cls(**values)


def load_settings(config_file: Optional[str] = "settings.yaml") -> NavigationSettings:
    """Read :class:`NavigationSettings` from ``config_file`` (defaults if missing)."""

    return NavigationSettings.from_loader(ConfigLoader(config_file))
