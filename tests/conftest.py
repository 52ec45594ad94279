from datetime import datetime
from pathlib import Path

import pytest

from statecraft.shared.catalog import BuildingDef, Resource, ResourceCatalog
from statecraft.shared.records import Military, Nation, Province, ProvinceBuilding, ResourceLedger

NOW = datetime(2001, 1, 8)


@pytest.fixture
def catalog():
    resources = [
        Resource("food", "Food", "basic", "tons", 500.0),
        Resource("water", "Water", "basic", "million liters", 10.0),
        Resource("electricity", "Electricity", "infrastructure", "MWh", 50.0),
        Resource("oil", "Oil", "strategic", "barrels", 60.0),
        Resource("steel", "Steel", "industrial", "tons", 800.0),
        Resource("consumer_goods", "Consumer Goods", "industrial", "units", 200.0),
        Resource("manpower", "Manpower", "population", "people", 0.0),
        Resource("uranium", "Uranium", "strategic", "kg", 45000.0),
        Resource("research", "Research Points", "knowledge", "points", 100.0),
        Resource("rare_earth", "Rare Earth Elements", "strategic", "tons", 50000.0),
        Resource("semiconductors", "Semiconductors", "industrial", "units", 1000.0),
    ]
    buildings = [
        BuildingDef("farm", "Farm", produces={"food": 100.0}, consumes={"water": 20.0}),
        BuildingDef("power_plant", "Power Plant", produces={"electricity": 200.0}, consumes={"oil": 30.0}),
        BuildingDef("oil_well", "Oil Well", produces={"oil": 50.0}),
    ]
    return ResourceCatalog(resources, buildings)


@pytest.fixture
def make_nation():
    """Factory: make_nation('A', stock={...}, prod={...}, cons={...}, ...)."""
    def _make(nation_id, stock=None, prod=None, cons=None, shortages=None,
              name=None, population=0.0, readiness=100.0, nuclear=False,
              allies=(), enemies=(), embargoes=()):
        nation = Nation(
            id=nation_id,
            name=name or nation_id,
            ledger=ResourceLedger(
                stockpiles=dict(stock or {}),
                production=dict(prod or {}),
                consumption=dict(cons or {}),
                shortages=dict(shortages or {}),
            ),
            military=Military(readiness=readiness, nuclear_capability=nuclear),
            population=population,
        )
        nation.diplomacy.allies.update(allies)
        nation.diplomacy.enemies.update(enemies)
        nation.diplomacy.embargoes.update(embargoes)
        return nation
    return _make


@pytest.fixture
def make_province():
    def _make(province_id, country, population=1000.0, unrest=0.0, buildings=(), deposits=None):
        return Province(
            id=province_id,
            name=province_id,
            country=country,
            population=population,
            unrest=unrest,
            buildings=[ProvinceBuilding(bid, level, eff) for bid, level, eff in buildings],
            resource_deposits=dict(deposits or {}),
        )
    return _make


RESOURCES_TOML = """
[food]
name = "Food"
category = "basic"
unit = "tons"
base_price = 500.0

[water]
name = "Water"
category = "basic"
unit = "million liters"
base_price = 10.0

[oil]
name = "Oil"
category = "strategic"
unit = "barrels"
base_price = 60.0
"""

BUILDINGS_TOML = """
[farm]
name = "Farm"
produces = { food = 100.0 }
consumes = { water = 20.0 }
"""

SCENARIO_TOML = """
[nations.AAA]
name = "Alphaland"
population = 1000
resourceStockpiles = { food = 1000.0, water = 500.0, oil = 5.0 }

[nations.BBB]
name = "Betaland"
population = 1000
resourceStockpiles = { food = 50.0, water = 500.0, oil = 2000.0 }

[provinces.a1]
name = "Alpha One"
country = "Alphaland"
population = 5000
buildings = [ { buildingId = "farm", level = 2, efficiency = 1.0 } ]
resourceDeposits = { water = 400.0 }

[provinces.b1]
name = "Beta One"
country = "Betaland"
population = 5000
resourceDeposits = { oil = 300.0, water = 200.0 }
"""

ECONOMY_TOML = """
[economy]
player_nation = "AAA"
ai_offer_chance = 0.0
rng_seed = 7
"""


@pytest.fixture
def project_root(tmp_path) -> Path:
    """A minimal project tree with one 'base' mod."""
    data = tmp_path / "modules" / "base" / "data"
    data.mkdir(parents=True)
    (data / "resources.toml").write_text(RESOURCES_TOML)
    (data / "buildings.toml").write_text(BUILDINGS_TOML)
    (data / "scenario.toml").write_text(SCENARIO_TOML)
    (data / "economy.toml").write_text(ECONOMY_TOML)
    return tmp_path
