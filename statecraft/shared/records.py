"""
Plain data records exchanged between the economy mechanics and the external state manager.

Records are mutable dataclasses owned by the GameState. Mechanics never mutate them
directly: they return partial update deltas which the systems merge into a staged copy.
Ingestion through `from_dict` clamps negative or missing numbers to zero so that every
downstream computation can assume sane inputs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Set, Tuple


def _num(value: Any, default: float = 0.0) -> float:
    """Coerces a ledger number; negatives clamp to zero, missing/NaN/garbage become the default."""
    try:
        num = float(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    if num != num:
        return default
    return max(0.0, num)


def _amounts(value: Any) -> Dict[str, float]:
    """Normalizes a resourceId -> amount mapping."""
    if not isinstance(value, Mapping):
        return {}
    return {str(k): _num(v) for k, v in value.items()}


def _ids(value: Any) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        return {str(x) for x in value}
    return set()


# ---------------------------------------------------------------------------
#  Nation
# ---------------------------------------------------------------------------

@dataclass
class ResourceLedger:
    """Per-nation resource accounts. All amounts are per in-game week."""
    stockpiles: Dict[str, float] = field(default_factory=dict)
    production: Dict[str, float] = field(default_factory=dict)
    consumption: Dict[str, float] = field(default_factory=dict)
    # resourceId -> shortage severity in [0, 1]
    shortages: Dict[str, float] = field(default_factory=dict)
    # Production efficiency modifiers, always contains 'overall'
    efficiency: Dict[str, float] = field(default_factory=lambda: {"overall": 1.0})

    def stockpile(self, resource_id: str) -> float:
        return max(0.0, self.stockpiles.get(resource_id, 0.0))

    def produced(self, resource_id: str) -> float:
        return max(0.0, self.production.get(resource_id, 0.0))

    def consumed(self, resource_id: str) -> float:
        return max(0.0, self.consumption.get(resource_id, 0.0))

    def severity(self, resource_id: str) -> float:
        return min(1.0, max(0.0, self.shortages.get(resource_id, 0.0)))

    def weeks_of_supply(self, resource_id: str, extra_outflow: float = 0.0) -> float:
        consumption = self.consumed(resource_id)
        if consumption <= 0:
            return float("inf")
        return max(0.0, self.stockpile(resource_id) - extra_outflow) / consumption

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceLedger":
        efficiency = _amounts(data.get("resourceEfficiency"))
        efficiency["overall"] = min(1.0, efficiency.get("overall", 1.0))
        return cls(
            stockpiles=_amounts(data.get("resourceStockpiles")),
            production=_amounts(data.get("resourceProduction")),
            consumption=_amounts(data.get("resourceConsumption")),
            shortages={k: min(1.0, v) for k, v in _amounts(data.get("resourceShortages")).items()},
            efficiency=efficiency,
        )


@dataclass
class Military:
    readiness: float = 100.0  # 0-100
    nuclear_capability: bool = False


@dataclass
class Diplomacy:
    """Relationship sets, keyed by nation id. `embargoes` lists nations THIS nation embargoes."""
    allies: Set[str] = field(default_factory=set)
    enemies: Set[str] = field(default_factory=set)
    embargoes: Set[str] = field(default_factory=set)
    sanctions: Set[str] = field(default_factory=set)


@dataclass
class Nation:
    id: str
    name: str
    ledger: ResourceLedger = field(default_factory=ResourceLedger)
    military: Military = field(default_factory=Military)
    diplomacy: Diplomacy = field(default_factory=Diplomacy)
    population: float = 0.0
    # Accumulated research; a tenth of it is yielded as 'research' each week
    research_points: float = 0.0
    # Outgoing offers authored by this nation
    trade_offers: List["TradeOffer"] = field(default_factory=list)
    # Ids of agreements stored in GameState.agreements
    trade_agreements: List[str] = field(default_factory=list)

    def embargoes_with(self, other: "Nation") -> bool:
        """True if an embargo exists in either direction."""
        return other.id in self.diplomacy.embargoes or self.id in other.diplomacy.embargoes

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Nation":
        mil = data.get("military") or {}
        dip = data.get("diplomacy") or {}
        nation_id = str(data.get("id") or "")
        if not nation_id:
            raise ValueError("Nation record without an id.")
        readiness = mil.get("readiness")
        return cls(
            id=nation_id,
            name=str(data.get("name") or nation_id),
            ledger=ResourceLedger.from_dict(data),
            military=Military(
                readiness=min(100.0, _num(readiness, 100.0)),
                nuclear_capability=bool(mil.get("nuclearCapability", False)),
            ),
            diplomacy=Diplomacy(
                allies=_ids(dip.get("allies")),
                enemies=_ids(dip.get("enemies")),
                embargoes=_ids(dip.get("embargoes")),
                sanctions=_ids(dip.get("sanctions")),
            ),
            population=_num((data.get("demographics") or {}).get("population", data.get("population"))),
            research_points=_num((data.get("technology") or {}).get("researchPoints")),
        )


# ---------------------------------------------------------------------------
#  Province
# ---------------------------------------------------------------------------

@dataclass
class ProvinceBuilding:
    building_id: str
    level: int = 1
    efficiency: float = 1.0  # 0-1


@dataclass
class Province:
    id: str
    name: str
    country: str  # Owning nation *name*
    population: float = 0.0
    unrest: float = 0.0  # 0-10
    buildings: List[ProvinceBuilding] = field(default_factory=list)
    resource_deposits: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Province":
        pop = data.get("population")
        total = pop.get("total") if isinstance(pop, Mapping) else pop
        buildings = []
        for raw in data.get("buildings") or []:
            if not isinstance(raw, Mapping) or not raw.get("buildingId"):
                continue
            buildings.append(ProvinceBuilding(
                building_id=str(raw["buildingId"]),
                level=max(1, int(_num(raw.get("level"), 1.0))),
                efficiency=min(1.0, _num(raw.get("efficiency"), 1.0)),
            ))
        province_id = str(data.get("id") or "")
        if not province_id:
            raise ValueError("Province record without an id.")
        return cls(
            id=province_id,
            name=str(data.get("name") or province_id),
            country=str(data.get("country") or ""),
            population=_num(total),
            unrest=min(10.0, _num(data.get("unrest"))),
            buildings=buildings,
            resource_deposits=_amounts(data.get("resourceDeposits")),
        )


# ---------------------------------------------------------------------------
#  Trade
# ---------------------------------------------------------------------------

OFFER_PENDING = "pending"
OFFER_ACCEPTED = "accepted"
OFFER_REJECTED = "rejected"
OFFER_EXPIRED = "expired"

AGREEMENT_ACTIVE = "active"
AGREEMENT_SUSPENDED = "suspended"
AGREEMENT_CANCELLED = "cancelled"


@dataclass
class TradeOffer:
    id: str
    from_nation: str
    to_nation: str
    offering: Dict[str, float]
    requesting: Dict[str, float]
    duration: int  # weeks
    created_date: datetime
    expires_date: datetime
    status: str = OFFER_PENDING

    def exports_of(self, nation_id: str) -> Dict[str, float]:
        """Resources `nation_id` has to hand over if the offer is executed."""
        return self.offering if nation_id == self.from_nation else self.requesting

    def imports_of(self, nation_id: str) -> Dict[str, float]:
        return self.requesting if nation_id == self.from_nation else self.offering

    def counterpart_of(self, nation_id: str) -> str:
        return self.to_nation if nation_id == self.from_nation else self.from_nation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fromNation": self.from_nation,
            "toNation": self.to_nation,
            "offering": dict(self.offering),
            "requesting": dict(self.requesting),
            "duration": self.duration,
            "status": self.status,
            "createdDate": self.created_date.isoformat(),
            "expiresDate": self.expires_date.isoformat(),
        }


@dataclass
class TradeTerms:
    exports: Dict[str, float] = field(default_factory=dict)
    imports: Dict[str, float] = field(default_factory=dict)


@dataclass
class TradeAgreement:
    """
    A bilateral agreement executed once per tick.
    `terms` are symmetric: terms[a].exports == terms[b].imports and vice versa.
    """
    id: str
    nations: Tuple[str, str]
    terms: Dict[str, TradeTerms]
    duration: int  # weeks remaining
    value: float
    start_date: datetime
    status: str = AGREEMENT_ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nations": list(self.nations),
            "terms": {
                nid: {"exports": dict(t.exports), "imports": dict(t.imports)}
                for nid, t in self.terms.items()
            },
            "duration": self.duration,
            "status": self.status,
            "value": self.value,
            "startDate": self.start_date.isoformat(),
        }


@dataclass
class ShortageEffect:
    """
    Gameplay consequences of one resource's shortage for one tick.
    Multipliers (building_efficiency, military_readiness) lie in [0, 1];
    province_stability is an additive unrest weight; population_growth a growth rate.
    """
    resource_id: str
    severity: float
    building_efficiency: float | None = None
    military_readiness: float | None = None
    province_stability: float | None = None
    population_growth: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        effects = {
            "buildingEfficiency": self.building_efficiency,
            "militaryReadiness": self.military_readiness,
            "provinceStability": self.province_stability,
            "populationGrowth": self.population_growth,
        }
        return {
            "resourceId": self.resource_id,
            "severity": self.severity,
            "effects": {k: v for k, v in effects.items() if v is not None},
        }
