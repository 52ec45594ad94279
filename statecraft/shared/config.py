import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List

import orjson
import rtoml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when mods.json or an economy setting cannot be used."""


@dataclass
class EconomyTuning:
    """
    Knobs of the economy simulation that are not fixed game rules.
    Read from 'economy.toml' in the active mods; anything missing keeps its default.
    """
    # Nation controlled by the local player; excluded from AI offer generation/evaluation.
    player_nation: str = ""
    # Chance per tick that AI nations look for trade partners.
    ai_offer_chance: float = 0.1
    # Seed for the session RNG. Same seed + same inputs = same game.
    rng_seed: int = 0
    # >1 runs per-nation analysis on a thread pool.
    parallel_workers: int = 1
    default_offer_duration: int = 52
    ai_offer_duration: int = 26


class GameConfig:
    """
    Central configuration handler for the economy engine.

    Responsibilities:
    1. Resolve file paths dynamically (removing hardcoded strings).
    2. Manage the Mod Load Order via 'mods.json'.
    3. Provide access to Data directories and the merged 'economy.toml' tuning.
    """
    def __init__(self, project_root: Path):
        self.project_root = project_root

        # Standard directory structure definitions
        self.modules_dir = project_root / "modules"
        self.mods_file = project_root / "mods.json"

        # Default load order (can be overridden by mods.json)
        self.active_mods: List[str] = ["base"]
        self._load_mods_manifest()

        self.tuning = self._load_tuning()

    def _load_mods_manifest(self):
        """Attempts to read the load order from mods.json."""
        if not self.mods_file.exists():
            return

        try:
            data = orjson.loads(self.mods_file.read_bytes())
        except orjson.JSONDecodeError as e:
            logger.warning("[Config] Failed to parse mods.json: %s", e)
            return

        # Expected format: {"active_mods": ["base", "my_mod"]}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.mods_file} must hold a JSON object, got {type(data).__name__}")
        if isinstance(data.get("active_mods"), list):
            self.active_mods = [str(m) for m in data["active_mods"]]
            logger.info("[Config] Active Mods: %s", self.active_mods)

    def _load_tuning(self) -> EconomyTuning:
        """Merges 'economy.toml' of every active mod. Later mods override earlier ones."""
        merged: Dict[str, Any] = {}
        for data_dir in self.get_data_dirs():
            path = data_dir / "economy.toml"
            if not path.exists():
                continue
            try:
                section = rtoml.load(path).get("economy", {})
            except rtoml.TomlParsingError as e:
                logger.warning("[Config] Skipping malformed %s: %s", path, e)
                continue
            merged.update(section)

        known = {f.name: f.type for f in fields(EconomyTuning)}
        values: Dict[str, Any] = {}
        for key, raw in merged.items():
            if key not in known:
                logger.warning("[Config] Unknown economy setting '%s' ignored.", key)
                continue
            try:
                values[key] = known[key](raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Economy setting '{key}' = {raw!r} is not a valid {known[key].__name__}") from e

        tuning = EconomyTuning(**values)
        self._validate(tuning)
        return tuning

    @staticmethod
    def _validate(tuning: EconomyTuning):
        if not 0.0 <= tuning.ai_offer_chance <= 1.0:
            raise ConfigError(f"ai_offer_chance must lie in [0, 1], got {tuning.ai_offer_chance}")
        if tuning.parallel_workers < 1:
            raise ConfigError(f"parallel_workers must be at least 1, got {tuning.parallel_workers}")
        if tuning.default_offer_duration < 1 or tuning.ai_offer_duration < 1:
            raise ConfigError("Offer durations must be at least one week.")

    def get_data_dirs(self) -> List[Path]:
        """
        Returns a list of data directories for all active mods.
        Used by the StaticAssetLoader to scan for content.
        """
        paths = []
        for mod in self.active_mods:
            p = self.modules_dir / mod / "data"
            if p.exists():
                paths.append(p)
        return paths
