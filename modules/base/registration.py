import random
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.agreements import AgreementExecutor
from statecraft.engine.mechanics.alerts import AlertScheduler
from statecraft.engine.mechanics.effects import EffectPropagator
from statecraft.engine.mechanics.trade import TradeNegotiator
from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.config import EconomyTuning

# We import the systems that belong to this module
from modules.base.systems.time_system import TimeSystem
from modules.base.systems.ledger_system import LedgerSystem
from modules.base.systems.shortage_system import ShortageSystem
from modules.base.systems.effects_system import EffectsSystem
from modules.base.systems.trade_system import TradeSystem
from modules.base.systems.agreement_system import AgreementSystem
from modules.base.systems.alert_system import AlertSystem


def register(catalog: ResourceCatalog, tuning: EconomyTuning,
             scheduler: AlertScheduler, rng: random.Random) -> List[ISystem]:
    """
    The GameSession calls this function to discover what logic
    this module contributes to the game loop.
    """
    return [
        # Order in this list doesn't matter.
        # The Engine sorts them automatically based on their .dependencies property.
        TimeSystem(),
        LedgerSystem(catalog),
        ShortageSystem(scheduler.analyzer),
        EffectsSystem(EffectPropagator(catalog), workers=tuning.parallel_workers),
        TradeSystem(TradeNegotiator(catalog), tuning, rng),
        AgreementSystem(AgreementExecutor()),
        AlertSystem(scheduler),
    ]
