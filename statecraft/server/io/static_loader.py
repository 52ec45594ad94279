import logging
from pathlib import Path
from typing import Any, Dict

import polars as pl
import rtoml

from statecraft.engine.mechanics.shortages import ShortageAnalyzer
from statecraft.server.state import GameState
from statecraft.shared.catalog import BuildingDef, CatalogError, Resource, ResourceCatalog
from statecraft.shared.config import GameConfig
from statecraft.shared.records import Nation, Province

logger = logging.getLogger(__name__)


class StaticAssetLoader:
    """
    Responsible strictly for loading immutable game definitions (TOML).
    It builds the resource catalog and populates the initial GameState with the
    scenario (Nations, Provinces).

    Every file is looked up in all active mods; entries are keyed by id and
    mods loaded later override earlier ones.
    """
    def __init__(self, config: GameConfig):
        self.config = config

    # --- Catalog -------------------------------------------------------------

    def load_catalog(self) -> ResourceCatalog:
        logger.info("[StaticLoader] Compiling resource catalog...")
        resources = [
            Resource(
                id=rid,
                name=str(raw.get("name", rid)),
                category=str(raw.get("category", "misc")),
                unit=str(raw.get("unit", "units")),
                base_price=self._float(raw.get("base_price", 0.0), f"resource '{rid}' base_price"),
            )
            for rid, raw in self._merged("resources.toml").items()
        ]
        buildings = [
            BuildingDef(
                id=bid,
                name=str(raw.get("name", bid)),
                produces=self._bundle(raw.get("produces"), f"building '{bid}'"),
                consumes=self._bundle(raw.get("consumes"), f"building '{bid}'"),
            )
            for bid, raw in self._merged("buildings.toml").items()
        ]
        catalog = ResourceCatalog(resources, buildings)
        logger.info("[StaticLoader] %d resources, %d buildings", len(resources), len(buildings))
        return catalog

    # --- Scenario ------------------------------------------------------------

    def compile_initial_state(self, catalog: ResourceCatalog) -> GameState:
        """
        Aggregates scenario data from all active mods to build the starting world state.
        """
        logger.info("[StaticLoader] Compiling scenario...")
        scenario = self._merged("scenario.toml", sections=("nations", "provinces"))
        state = GameState()

        for nation_id, raw in scenario["nations"].items():
            nation = Nation.from_dict({**raw, "id": nation_id})
            state.nations[nation.id] = nation

        names = {n.name for n in state.nations.values()}
        for province_id, raw in scenario["provinces"].items():
            province = Province.from_dict({**raw, "id": province_id})
            if province.country not in names:
                logger.warning("[StaticLoader] Province '%s' belongs to unknown nation '%s'.",
                               province.id, province.country)
            state.provinces[province.id] = province

        if not state.nations:
            logger.warning("[StaticLoader] Warning: No nations defined in any scenario.toml.")

        # Inspection tables; the mechanics work on the records
        analyzer = ShortageAnalyzer(catalog)
        state.update_table("ledger", analyzer.ledger_frame(state.nations.values()))
        state.update_table("nations", self._nations_table(state))
        state.update_table("provinces", self._provinces_table(state))

        logger.info("[StaticLoader] %d nations, %d provinces", len(state.nations), len(state.provinces))
        return state

    # --- Helpers -------------------------------------------------------------

    def _merged(self, filename: str, sections: tuple = ()) -> Dict[str, Any]:
        """
        Reads `filename` from every data dir. Without `sections` the top-level tables
        are the entries; otherwise each named section is merged separately.
        """
        merged: Dict[str, Any] = {s: {} for s in sections}
        for data_dir in self.config.get_data_dirs():
            path = data_dir / filename
            if not path.exists():
                continue
            logger.debug("[StaticLoader] Loading %s", path)
            doc = self._read_toml(path)
            if sections:
                for section in sections:
                    merged[section].update(doc.get(section, {}))
            else:
                merged.update(doc)
        return merged

    @staticmethod
    def _read_toml(path: Path) -> Dict[str, Any]:
        try:
            return rtoml.load(path)
        except rtoml.TomlParsingError as e:
            raise CatalogError(f"Malformed data file {path}: {e}") from e

    @staticmethod
    def _float(value: Any, what: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise CatalogError(f"Invalid number for {what}: {value!r}") from None

    def _bundle(self, value: Any, what: str) -> Dict[str, float]:
        if not value:
            return {}
        if not isinstance(value, dict):
            raise CatalogError(f"Expected a resource table in {what}, got {value!r}")
        return {str(k): self._float(v, f"{what} '{k}'") for k, v in value.items()}

    @staticmethod
    def _nations_table(state: GameState) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "id": [n.id for n in state.nations.values()],
                "name": [n.name for n in state.nations.values()],
                "population": [n.population for n in state.nations.values()],
                "readiness": [n.military.readiness for n in state.nations.values()],
            },
            schema={"id": pl.String, "name": pl.String, "population": pl.Float64, "readiness": pl.Float64},
        )

    @staticmethod
    def _provinces_table(state: GameState) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "id": [p.id for p in state.provinces.values()],
                "name": [p.name for p in state.provinces.values()],
                "country": [p.country for p in state.provinces.values()],
                "population": [p.population for p in state.provinces.values()],
                "unrest": [p.unrest for p in state.provinces.values()],
            },
            schema={"id": pl.String, "name": pl.String, "country": pl.String,
                    "population": pl.Float64, "unrest": pl.Float64},
        )
