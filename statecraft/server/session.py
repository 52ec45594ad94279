import logging
import random
import threading
from typing import Callable, List, Optional

from statecraft.engine.mechanics.alerts import AlertScheduler
from statecraft.engine.mechanics.shortages import ShortageAnalyzer
from statecraft.engine.simulator import Engine, TickAborted
from statecraft.server.io.static_loader import StaticAssetLoader
from statecraft.server.report import TickReport
from statecraft.server.state import GameState
from statecraft.shared.actions import GameAction
from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.config import GameConfig

from modules.base.registration import register

logger = logging.getLogger(__name__)


class GameSession:
    """
    The 'Host' of the game. It manages the lifecycle of the simulation.

    Architecture Note:
        This class uses the Factory Method pattern (`create_local`).
        The `__init__` method is lightweight and strictly for Dependency Injection.
        Heavy loading logic is handled in `create_local`.

        The session owns the AlertScheduler: its history exists exactly as long as
        the session and is dropped by `close()`.
    """

    def __init__(self,
                 config: GameConfig,
                 catalog: ResourceCatalog,
                 engine: Engine,
                 scheduler: AlertScheduler,
                 initial_state: GameState):
        """
        Internal Constructor.
        Receives fully initialized subsystems. Do not call this directly to load a game.
        Use `GameSession.create_local()` instead.
        """
        self.config = config
        self.catalog = catalog
        self.engine = engine
        self.scheduler = scheduler

        # Game Data
        self.state = initial_state
        self.action_queue: List[GameAction] = []
        self.last_report: TickReport | None = None

        logger.info("[GameSession] Session initialized successfully.")

    @classmethod
    def create_local(cls, config: GameConfig,
                     progress_cb: Optional[Callable[[float, str], None]] = None) -> 'GameSession':
        """
        Factory Method: Orchestrates the full startup sequence for a local game.

        Responsibilities:
            1. Load the resource & building catalog.
            2. Compile the scenario into the initial GameState.
            3. Initialize Engine & Systems.

        Args:
            config: Game paths and settings.
            progress_cb: Callback(fraction, text) for a loading screen.
        """
        def report(p: float, text: str):
            if progress_cb:
                progress_cb(p, text)

        try:
            # --- Step 1: Catalog ---
            report(0.2, "Server: Loading resource catalog...")
            loader = StaticAssetLoader(config)
            catalog = loader.load_catalog()

            # --- Step 2: World Data Loading ---
            report(0.5, "Server: Loading scenario...")
            initial_state = loader.compile_initial_state(catalog)

            # --- Step 3: Engine & Systems ---
            report(0.8, "Server: Registering game systems...")
            tuning = config.tuning
            scheduler = AlertScheduler(ShortageAnalyzer(catalog))
            engine = Engine()
            engine.register_systems(register(catalog, tuning, scheduler, random.Random(tuning.rng_seed)))

            report(1.0, "Server: Ready.")
            return cls(config, catalog, engine, scheduler, initial_state)

        except Exception:
            logger.exception("[GameSession] Critical Startup Error")
            raise

    def tick(self, cancel: threading.Event | None = None) -> TickReport:
        """
        Advances the simulation by one week and returns what the tick produced.

        Raises TickAborted if `cancel` was set or a system failed; the state is then
        unchanged. Queued actions survive a cancellation but are dropped when they
        made the tick fail, so one bad command cannot block the game.
        """
        actions = list(self.action_queue)
        try:
            self.engine.step(self.state, actions, cancel)
        except TickAborted as e:
            if not e.cancelled:
                self.action_queue.clear()
            raise

        self.action_queue.clear()
        self.last_report = TickReport.from_state(self.state)
        return self.last_report

    def run(self, weeks: int, cancel: threading.Event | None = None) -> List[TickReport]:
        return [self.tick(cancel) for _ in range(weeks)]

    def receive_action(self, action: GameAction):
        """
        Endpoint for Clients to submit commands. Applied on the next tick.
        """
        self.action_queue.append(action)

    def get_state_snapshot(self) -> GameState:
        """
        Returns the data for rendering.
        For local single-player, we just return the object reference (Zero-Copy).
        """
        return self.state

    def close(self):
        self.scheduler.close()
        self.action_queue.clear()
        logger.info("[GameSession] Session closed.")
