import logging
import threading
from typing import List, Dict
from graphlib import TopologicalSorter, CycleError
from statecraft.server.state import GameState
from statecraft.shared.actions import GameAction
from statecraft.engine.interfaces import ISystem

logger = logging.getLogger(__name__)


class TickAborted(RuntimeError):
    """
    Raised when a tick is cancelled or a system fails; the live state is left untouched.
    `cancelled` tells a caller-initiated cancel apart from a failure.
    """

    def __init__(self, message: str, cancelled: bool = False):
        super().__init__(message)
        self.cancelled = cancelled


class Engine:
    """
    The core logic driver.
    Orchestrates systems using a Dependency Graph to determine execution order.

    Every tick runs on a fork of the GameState. Only when all systems finished is
    the fork committed, so a cancelled or crashed tick never leaves partial
    mutations visible.
    """

    def __init__(self):
        # Map: "base.trade" -> TradeSystem instance
        self.systems_map: Dict[str, ISystem] = {}

        # The finalized, sorted list used in the loop
        self.execution_order: List[ISystem] = []

        # Dirty flag to trigger rebuild on next tick if systems changed
        self._is_dirty = False

    def register_systems(self, systems: List[ISystem]):
        """
        Registers a batch of systems and marks the graph for rebuild.
        """
        for system in systems:
            if system.id in self.systems_map:
                logger.warning("[Engine] System '%s' is being overwritten!", system.id)
            self.systems_map[system.id] = system

        self._is_dirty = True

    def _rebuild_execution_order(self):
        """
        Uses Topological Sort to resolve dependencies.
        """
        logger.debug("[Engine] Building dependency graph...")
        sorter = TopologicalSorter()

        # 1. Build the graph structure
        for sys_id, system in self.systems_map.items():
            sorter.add(sys_id, *system.dependencies)

        try:
            # 2. Resolve order
            sorted_ids = list(sorter.static_order())
        except CycleError as e:
            logger.critical("[Engine] Circular dependency detected! %s", e)
            raise

        # 3. Map IDs back to Instances
        self.execution_order = [
            self.systems_map[sys_id]
            for sys_id in sorted_ids
            if sys_id in self.systems_map
        ]

        logger.info("[Engine] Graph resolved. Execution Order: %s", [s.id for s in self.execution_order])
        self._is_dirty = False

    def step(self, state: GameState, actions: List[GameAction],
             cancel: threading.Event | None = None) -> GameState:
        """
        Runs one tick of the simulation using the sorted graph.
        Returns the committed state (the same object as `state`).
        """
        if self._is_dirty:
            self._rebuild_execution_order()

        # 1. Stage: all systems work on a private copy
        staged = state.fork()

        # 2. Reset Frame State
        # Events and reports are transient; they only exist for the duration of the current tick.
        staged.reset_transient()

        # 3. Inject Inputs
        staged.globals["tick"] = staged.globals.get("tick", 0) + 1
        staged.current_actions = list(actions)

        # 4. Run All Systems in Strict Order
        try:
            for system in self.execution_order:
                if cancel is not None and cancel.is_set():
                    logger.info("[Engine] Tick %s cancelled before '%s'.", staged.globals["tick"], system.id)
                    raise TickAborted(f"Tick cancelled before system '{system.id}'.", cancelled=True)
                try:
                    system.update(staged)
                except Exception as e:
                    logger.exception("[Engine] Error in system '%s'; tick discarded.", system.id)
                    raise TickAborted(f"System '{system.id}' failed: {e}") from e

            if cancel is not None and cancel.is_set():
                raise TickAborted("Tick cancelled before commit.", cancelled=True)
        except TickAborted:
            self._notify("on_abort")
            raise

        # 5. Atomic Commit
        staged.current_actions = []
        state.commit(staged)
        self._notify("on_commit")
        return state

    def _notify(self, hook: str):
        """
        Systems that keep state outside the GameState (e.g. alert history) stage it
        themselves and implement optional 'on_commit' / 'on_abort' hooks.
        """
        for system in self.execution_order:
            callback = getattr(system, hook, None)
            if callback is not None:
                callback()
