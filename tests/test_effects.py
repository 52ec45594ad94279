import pytest

from modules.base.systems.effects_system import EffectsSystem
from statecraft.engine.mechanics.effects import EffectPropagator
from statecraft.server.state import GameState


def test_zero_severities_are_a_noop(catalog, make_nation, make_province):
    propagator = EffectPropagator(catalog)
    nation = make_nation("A", shortages={"food": 0.0, "oil": 0.05})
    province = make_province("p1", "A", buildings=[("farm", 1, 1.0)])

    effects, nation_delta, province_deltas = propagator.propagate(nation, [province])
    assert effects == []
    assert nation_delta == {}
    assert province_deltas == {}


def test_oil_shortage_rules(catalog, make_nation):
    propagator = EffectPropagator(catalog)
    (effect,) = propagator.calculate_effects(make_nation("A", shortages={"oil": 1.0}))
    assert effect.military_readiness == pytest.approx(0.2)
    assert effect.building_efficiency == pytest.approx(0.5)


def test_uranium_only_hurts_nuclear_powers(catalog, make_nation):
    propagator = EffectPropagator(catalog)
    (plain,) = propagator.calculate_effects(make_nation("A", shortages={"uranium": 0.5}))
    (nuclear,) = propagator.calculate_effects(make_nation("B", shortages={"uranium": 0.5}, nuclear=True))
    assert plain.military_readiness is None
    assert nuclear.military_readiness == pytest.approx(0.8)


def test_unknown_resource_falls_back_to_generic_rule(catalog, make_nation):
    propagator = EffectPropagator(catalog)
    (effect,) = propagator.calculate_effects(make_nation("A", shortages={"research": 0.4}))
    assert effect.building_efficiency == pytest.approx(0.8)


def test_readiness_drifts_toward_target(catalog, make_nation):
    propagator = EffectPropagator(catalog)
    nation = make_nation("A", shortages={"oil": 1.0}, readiness=100.0)
    effects = propagator.calculate_effects(nation)
    delta = propagator.nation_update(nation, effects)

    # target 20, 10% of the gap per tick
    assert delta["readiness"] == pytest.approx(92.0)
    assert delta["efficiency_overall"] == pytest.approx(0.5)


def test_province_effects_accumulate(catalog, make_nation, make_province):
    propagator = EffectPropagator(catalog)
    nation = make_nation("A", shortages={"food": 1.0, "electricity": 1.0})
    province = make_province("p1", "A", population=10000.0, unrest=9.0, buildings=[("farm", 1, 1.0)])
    foreign = make_province("p2", "B", population=10000.0)

    effects = propagator.calculate_effects(nation)
    updates = propagator.province_updates([province, foreign], nation, effects)

    assert "p2" not in updates
    delta = updates["p1"]
    assert delta["unrest"] == 10.0
    assert delta["population"] == 9998.0
    assert delta["buildings"] == [pytest.approx(0.3)]

    propagator.apply_province_update(province, delta)
    assert province.buildings[0].efficiency == pytest.approx(0.3)
    assert 0.0 <= province.unrest <= 10.0


def test_small_population_change_is_ignored(catalog, make_nation, make_province):
    propagator = EffectPropagator(catalog)
    nation = make_nation("A", shortages={"food": 0.5})
    province = make_province("p1", "A", population=50.0)
    updates = propagator.province_updates([province], nation, propagator.calculate_effects(nation))
    assert "population" not in updates["p1"]


@pytest.mark.parametrize("resource_id, building, readiness", [
    ("steel", 0.2, 0.4),
    ("manpower", 0.6, 0.1),
    ("rare_earth", 0.4, None),
    ("semiconductors", 0.3, None),
])
def test_industrial_rules_at_full_severity(catalog, make_nation, resource_id, building, readiness):
    propagator = EffectPropagator(catalog)
    (effect,) = propagator.calculate_effects(make_nation("A", shortages={resource_id: 1.0}))
    assert effect.building_efficiency == pytest.approx(building)
    if readiness is None:
        assert effect.military_readiness is None
    else:
        assert effect.military_readiness == pytest.approx(readiness)
    assert effect.province_stability is None


def test_partial_steel_and_semiconductor_shortages(catalog, make_nation):
    propagator = EffectPropagator(catalog)
    steel, chips = propagator.calculate_effects(make_nation("A", shortages={"steel": 0.5, "semiconductors": 0.5}))
    assert steel.building_efficiency == pytest.approx(0.6)
    assert steel.military_readiness == pytest.approx(0.7)
    assert chips.building_efficiency == pytest.approx(0.65)


def test_consumer_goods_unrest_and_growth(catalog, make_nation, make_province):
    propagator = EffectPropagator(catalog)
    nation = make_nation("A", shortages={"consumer_goods": 0.5})
    province = make_province("p1", "A", population=10000.0, unrest=1.0)

    (effect,) = propagator.calculate_effects(nation)
    assert effect.province_stability == pytest.approx(0.4)
    assert effect.population_growth == pytest.approx(0.85)
    assert effect.building_efficiency is None

    delta = propagator.province_updates([province], nation, [effect])["p1"]
    assert delta["unrest"] == pytest.approx(1.2)
    assert delta["population"] == 10085.0
    assert "buildings" not in delta
    # no readiness or efficiency modifier, so nothing to say about the nation
    assert propagator.nation_update(nation, [effect]) == {}


def test_modifiers_stay_in_range_for_every_severity(catalog, make_nation, make_province):
    propagator = EffectPropagator(catalog)
    severities = [0.11, 0.2, 0.35, 0.5, 0.65, 0.8, 0.95, 1.0, 1.7]

    for resource_id in catalog.resource_ids:
        for severity in severities:
            nation = make_nation("A", shortages={resource_id: severity}, nuclear=True, readiness=100.0)
            province = make_province("p1", "A", population=10000.0, unrest=9.9,
                                     buildings=[("farm", 1, 1.0), ("oil_well", 1, 0.4)])

            effects, nation_delta, province_deltas = propagator.propagate(nation, [province])
            for effect in effects:
                assert 0.0 <= effect.severity <= 1.0
                if effect.building_efficiency is not None:
                    assert 0.0 <= effect.building_efficiency <= 1.0, (resource_id, severity)
                if effect.military_readiness is not None:
                    assert 0.0 <= effect.military_readiness <= 1.0, (resource_id, severity)
                if effect.population_growth is not None:
                    assert effect.population_growth >= -0.02

            assert 0.0 <= nation_delta.get("readiness", 100.0) <= 100.0
            assert 0.0 <= nation_delta.get("efficiency_overall", 1.0) <= 1.0
            delta = province_deltas.get("p1", {})
            assert 0.0 <= delta.get("unrest", 0.0) <= 10.0
            assert all(0.0 <= eff <= 1.0 for eff in delta.get("buildings", []))


def _shortage_world(make_nation, make_province):
    nations = {
        "A": make_nation("A", shortages={"food": 0.8, "steel": 0.5}, readiness=90.0),
        "B": make_nation("B", shortages={"oil": 1.0}, nuclear=True),
        "C": make_nation("C", shortages={"consumer_goods": 0.6, "uranium": 0.7}, nuclear=True),
        "D": make_nation("D"),
    }
    provinces = {}
    for idx, owner in enumerate(["A", "A", "B", "C", "D"]):
        pid = f"p{idx}"
        provinces[pid] = make_province(pid, owner, population=20000.0 + idx, unrest=idx,
                                       buildings=[("farm", 1, 1.0), ("power_plant", 2, 0.9)])
    return GameState(nations=nations, provinces=provinces)


def test_thread_pool_matches_serial_run(catalog, make_nation, make_province):
    state = _shortage_world(make_nation, make_province)
    serial, pooled = state.fork(), state.fork()

    EffectsSystem(EffectPropagator(catalog), workers=1).update(serial)
    EffectsSystem(EffectPropagator(catalog), workers=4).update(pooled)

    assert set(pooled.effects) == {"A", "B", "C"}
    assert pooled.effects == serial.effects
    assert pooled.nation_updates == serial.nation_updates
    assert pooled.province_updates == serial.province_updates
    for nid in state.nations:
        assert pooled.nations[nid] == serial.nations[nid]
    for pid in state.provinces:
        assert pooled.provinces[pid] == serial.provinces[pid]
    # the original is untouched
    assert state.effects == {}
