from typing import Protocol, List, runtime_checkable
from statecraft.server.state import GameState

@runtime_checkable
class ISystem(Protocol):
    """
    Interface for all simulation systems with Dependency Graph support.
    """

    @property
    def id(self) -> str:
        """
        Unique identifier for the system (e.g., 'base.trade').
        Namespace convention: 'mod_id.system_name'
        """
        ...

    @property
    def dependencies(self) -> List[str]:
        """
        List of system IDs that must execute BEFORE this system.
        Example: ['base.ledger', 'base.time']
        """
        ...

    def update(self, state: GameState) -> None:
        """
        Performs the logic for a single tick (one in-game week) on a staged state.
        """
        ...
