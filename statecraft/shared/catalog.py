from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping


class CatalogError(ValueError):
    """Raised when static catalog data is malformed."""


class UnknownResourceError(CatalogError, KeyError):
    """Raised when a resource id is referenced that the catalog does not define."""

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"Resource '{resource_id}' is not defined in the catalog.")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return self.args[0]


@dataclass(frozen=True)
class Resource:
    """
    Immutable catalog entry for a tradeable national resource.

    Attributes:
        id (str): Stable key used by ledgers and trade bundles (e.g. 'oil').
        base_price (float): Reference value of one unit, used for trade fairness.
    """
    id: str
    name: str
    category: str
    unit: str
    base_price: float


@dataclass(frozen=True)
class BuildingDef:
    """
    Immutable definition of a building type.
    Amounts are per week and per building level.
    """
    id: str
    name: str
    produces: Mapping[str, float] = field(default_factory=dict)
    consumes: Mapping[str, float] = field(default_factory=dict)


class ResourceCatalog:
    """
    Validated, read-only lookup of resources and building definitions.

    The catalog is injected into every mechanic at construction time.
    Lookups through `require()` fail fast with UnknownResourceError instead of
    silently valuing an unknown resource at zero.
    """

    def __init__(self, resources: Iterable[Resource], buildings: Iterable[BuildingDef] = ()):
        self._resources: Dict[str, Resource] = {}
        self._buildings: Dict[str, BuildingDef] = {}

        for res in resources:
            if not res.id:
                raise CatalogError("Resource definition without an id.")
            if res.base_price < 0:
                raise CatalogError(f"Resource '{res.id}' has a negative base_price ({res.base_price}).")
            self._resources[res.id] = res

        if not self._resources:
            raise CatalogError("Resource catalog is empty.")

        for bld in buildings:
            if not bld.id:
                raise CatalogError("Building definition without an id.")
            # A building may only reference resources the catalog knows about
            for rid in list(bld.produces) + list(bld.consumes):
                if rid not in self._resources:
                    raise CatalogError(f"Building '{bld.id}' references unknown resource '{rid}'.")
            self._buildings[bld.id] = bld

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    @property
    def resource_ids(self) -> List[str]:
        return list(self._resources)

    def require(self, resource_id: str) -> Resource:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise UnknownResourceError(resource_id) from None

    def price(self, resource_id: str) -> float:
        return self.require(resource_id).base_price

    def building(self, building_id: str) -> BuildingDef | None:
        """Buildings are looked up leniently; province data often lags the catalog."""
        return self._buildings.get(building_id)

    def validate_bundle(self, bundle: Mapping[str, float]) -> None:
        """Raises UnknownResourceError for the first unknown id in a trade bundle."""
        for rid in bundle:
            self.require(rid)
