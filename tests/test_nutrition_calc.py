# tests/test_nutrition_calc.py
from __future__ import annotations

import math
import pytest

from core.adjustments import RULES, Rule
from core.errors import ComputationError, ProfileValidationError
from core.nutrition_calc import NutritionalCalculator, calculate_nutrition_targets

calc = NutritionalCalculator()

MALE_70KG = {
    "age": 30,
    "gender": "male",
    "height": 175.0,
    "weight": 70.0,
    "work_style": "sedentary",
}

FEMALE_55KG = {
    "age": 32,
    "gender": "female",
    "height": 160.0,
    "weight": 55.0,
    "work_style": "light_active",
    "exercise_intensity": "light",
    "exercise_frequency": 2,
}


def _with(base: dict, **kw) -> dict:
    return {**base, **kw}


# ── BMR / PAL / TDEE ─────────────────────────────────────────────────
def test_bmr_mifflin_male():
    expected = 10 * 70 + 6.25 * 175 - 5 * 30 + 5   # 1648.75
    assert math.isclose(calc.bmr(MALE_70KG), expected, rel_tol=1e-9)


def test_bmr_female_and_other_constants():
    female = 10 * 55 + 6.25 * 160 - 5 * 32 - 161
    assert math.isclose(calc.bmr(FEMALE_55KG), female, rel_tol=1e-9)
    other = calc.bmr(_with(MALE_70KG, gender="other"))
    assert math.isclose(other, 1648.75 - 5 - 78, rel_tol=1e-9)


def test_tdee_sedentary_scenario():
    assert calc.pal(MALE_70KG) == 1.2
    assert math.isclose(calc.tdee(MALE_70KG), 1978.5, rel_tol=1e-9)
    res = calc.calculate(MALE_70KG)
    assert abs(res.summary.calories - 1978.5) <= 0.5
    assert res.calculation_basis.energy.goal_adjustment.delta_kcal == 0


def test_pal_exercise_addition():
    p = _with(MALE_70KG, exercise_intensity="moderate", exercise_frequency=3)
    assert calc.pal(p) == pytest.approx(1.3)


def test_pal_is_capped():
    p = _with(
        MALE_70KG,
        work_style="very_active",
        exercise_intensity="athlete",
        exercise_frequency=14,
        exercise_duration_per_session=120,
    )
    res = calc.calculate(p)
    assert res.summary.pal == 2.4
    assert res.calculation_basis.energy.pal.capped is True


@pytest.mark.parametrize(
    "field, values",
    [
        ("exercise_frequency", [0, 1, 3, 5, 7]),
        ("exercise_duration_per_session", [0, 30, 60, 90]),
        ("exercise_intensity", ["none", "light", "moderate", "intense", "athlete"]),
    ],
)
def test_pal_monotone(field, values):
    base = _with(MALE_70KG, exercise_intensity="moderate", exercise_frequency=3)
    pals = [calc.pal(_with(base, **{field: v})) for v in values]
    assert pals == sorted(pals)


# ── goal / energy ────────────────────────────────────────────────────
def test_lose_half_kilo_per_week():
    res = calc.calculate(_with(MALE_70KG, nutrition_goal="lose", weight_change_rate=0.5))
    assert res.calculation_basis.energy.goal_adjustment.delta_kcal == -550
    assert abs(res.summary.calories - (1978.5 - 550)) <= 0.5


def test_goal_ordering():
    kcal = {
        goal: calc.calculate(_with(MALE_70KG, nutrition_goal=goal, weight_change_rate=0.5)).summary.calories
        for goal in ("lose", "maintain", "gain")
    }
    assert kcal["lose"] < kcal["maintain"] < kcal["gain"]


def test_rate_sign_is_ignored_and_presets_accepted():
    neg = calc.calculate(_with(MALE_70KG, nutrition_goal="lose", weight_change_rate=-0.5))
    preset = calc.calculate(_with(MALE_70KG, nutrition_goal="lose", weight_change_rate="moderate"))
    assert neg.summary.calories == preset.summary.calories


def test_legacy_aliases():
    res = calc.calculate(_with(MALE_70KG, gender="Unspecified", nutrition_goal="lose_weight"))
    assert res.calculation_basis.inputs["gender"] == "other"
    assert res.summary.goal == "lose"


def test_energy_reconstructs_from_basis():
    p = _with(FEMALE_55KG, nutrition_goal="gain", weight_change_rate=0.25, pregnancy_status="lactating")
    e = calc.calculate(p).calculation_basis.energy
    rebuilt = e.bmr.result_kcal * e.pal.result + e.goal_adjustment.delta_kcal + e.pregnancy_delta_kcal
    assert e.pregnancy_delta_kcal == 500
    assert abs(e.final_kcal - rebuilt) <= 0.5


def test_energy_floor_at_zero_with_warning():
    p = _with(MALE_70KG, age=90, weight=30.0, height=120.0, nutrition_goal="lose", weight_change_rate=2.0)
    res = calc.calculate(p)
    assert res.summary.calories == 0
    assert res.calculation_basis.energy.energy_floor_applied is True
    assert res.target_data.protein_g >= 0 and res.target_data.carbs_g >= 0
    assert any("below" in w for w in res.calculation_basis.warnings)


def test_pregnancy_ignored_for_male():
    res = calc.calculate(_with(MALE_70KG, pregnancy_status="pregnant"))
    assert res.calculation_basis.energy.pregnancy_delta_kcal == 0
    assert any("ignored" in w for w in res.calculation_basis.warnings)


def test_athlete_performance_goal():
    # legacy rows store the long name
    res = calc.calculate(_with(MALE_70KG, nutrition_goal="athlete_performance", weight_change_rate=0.5))
    basis = res.calculation_basis
    assert res.summary.goal == "performance"
    assert basis.energy.goal_adjustment.delta_kcal == 300
    assert abs(res.summary.calories - (1978.5 + 300)) <= 0.5
    ratios = basis.macros.ratios
    assert (ratios.protein, ratios.fat, ratios.carbs) == (0.25, 0.25, 0.50)
    assert not basis.warnings


def test_calorie_minimum_guardrail_is_advisory():
    res = calc.calculate(_with(FEMALE_55KG, nutrition_goal="lose", weight_change_rate=0.75))
    (guard,) = [g for g in res.calculation_basis.guardrails if g.type == "calorie_minimum"]
    assert guard.threshold == 1200
    assert guard.applied is False
    assert guard.original == res.summary.calories < 1200


def test_growth_protection_for_minors():
    teen = {"age": 15, "gender": "male", "height": 165.0, "weight": 52.0, "nutrition_goal": "lose",
            "weight_change_rate": 0.5}
    res = calc.calculate(teen)
    growth = [g for g in res.calculation_basis.guardrails if g.type == "growth_protection"]
    assert len(growth) == 2
    assert all(g.severity == "critical" for g in growth)
    # the energy chain is left intact
    e = res.calculation_basis.energy
    rebuilt = e.bmr.result_kcal * e.pal.result + e.goal_adjustment.delta_kcal
    assert abs(e.final_kcal - rebuilt) <= 0.5

    adult = calc.calculate(_with(teen, age=30))
    assert not [g for g in adult.calculation_basis.guardrails if g.type == "growth_protection"]


# ── macros ───────────────────────────────────────────────────────────
@pytest.mark.parametrize(
    "profile",
    [
        MALE_70KG,
        FEMALE_55KG,
        _with(MALE_70KG, nutrition_goal="lose", weight_change_rate=0.75),
        _with(FEMALE_55KG, nutrition_goal="gain", weight_change_rate=0.5),
        _with(MALE_70KG, health_conditions=["diabetes", "dyslipidemia"]),
        _with(MALE_70KG, health_conditions=["kidney_disease"]),
        _with(MALE_70KG, age=110, height=140.0, weight=290.0, nutrition_goal="gain", weight_change_rate=2.0),
        _with(MALE_70KG, weight=290.0, health_conditions=["kidney_disease"]),
        _with(FEMALE_55KG, pregnancy_status="pregnant", health_conditions=["diabetes", "dyslipidemia"]),
        _with(FEMALE_55KG, pregnancy_status="lactating", nutrition_goal="lose", weight_change_rate=1.0),
    ],
)
def test_macro_energy_matches_calories(profile):
    t = calc.calculate(profile).target_data
    assert abs(t.macro_kcal - t.calories) <= t.calories * 0.01


TODDLER = {"age": 1, "gender": "female", "height": 75.0, "weight": 11.0}


# lose rates that walk the toddler's target from ~55 kcal down to 0
@pytest.mark.parametrize("rate", [round(0.400 + i * 0.001, 3) for i in range(51)])
def test_macro_energy_matches_low_calories(rate):
    res = calc.calculate(_with(TODDLER, nutrition_goal="lose", weight_change_rate=rate))
    t = res.target_data
    assert t.calories < 100
    assert abs(t.macro_kcal - t.calories) <= t.calories * 0.01
    assert min(t.protein_g, t.fat_g, t.carbs_g) >= 0


def test_fat_never_rounds_past_remaining_energy():
    # 55 kcal: the 1.2 g/kg protein floor leaves ~2 kcal for fat and carbs
    res = calc.calculate(_with(TODDLER, nutrition_goal="lose", weight_change_rate=0.4))
    t = res.target_data
    assert t.protein_g * 4 + t.fat_g * 9 <= t.calories
    assert math.isclose(t.macro_kcal, t.calories, abs_tol=0.01)


def test_maintain_split():
    res = calc.calculate(MALE_70KG)
    ratios = res.calculation_basis.macros.ratios
    assert (ratios.protein, ratios.fat, ratios.carbs) == (0.20, 0.25, 0.55)
    assert res.calculation_basis.macros.method == "ratio"


def test_protein_floor_switches_to_mixed():
    # heavy, low-energy profile: 20 % of calories is below 1.2 g/kg
    p = _with(MALE_70KG, weight=110.0, age=70, height=160.0)
    res = calc.calculate(p)
    assert res.target_data.protein_g == pytest.approx(132.0, abs=0.1)
    assert res.calculation_basis.macros.method == "mixed"


@pytest.mark.parametrize("goal", ["maintain", "lose", "gain", "performance"])
@pytest.mark.parametrize(
    "activity",
    [
        {},
        {"exercise_intensity": "athlete", "exercise_frequency": 7},
        {"work_style": "very_active", "exercise_intensity": "intense", "exercise_frequency": 14,
         "exercise_duration_per_session": 120},
    ],
)
def test_kidney_disease_protein_ceiling(goal, activity):
    p = _with(MALE_70KG, nutrition_goal=goal, weight_change_rate=0.75,
              health_conditions=["kidney_disease"], **activity)
    res = calc.calculate(p)
    assert res.target_data.protein_g <= 0.8 * 70
    tags = [h.condition for h in res.calculation_basis.health_adjustments]
    assert "kidney_disease" in tags


def test_fat_floor_overrides_a_lower_fat_rule():
    # same rule set, but dyslipidemia caps the fat share at 10 %
    rules = tuple(
        Rule("dyslipidemia", "condition", "ratio", "fat", "cap", 0.10, "fat share 10 %")
        if r.tag == "dyslipidemia" and r.stage == "ratio" else r
        for r in RULES
    )
    strict = NutritionalCalculator(rules=rules)
    res = strict.calculate(_with(MALE_70KG, health_conditions=["dyslipidemia"]))
    t = res.target_data
    assert t.fat_g * 9 >= t.calories * 0.15 - 0.5
    assert abs(t.macro_kcal - t.calories) <= t.calories * 0.01
    assert [g.type for g in res.calculation_basis.guardrails] == ["fat_floor"]
    assert res.calculation_basis.macros.method == "mixed"


def test_diabetes_ratio_rules():
    ratios = calc.calculate(_with(MALE_70KG, health_conditions=["diabetes"])).calculation_basis.macros.ratios
    assert (ratios.protein, ratios.fat, ratios.carbs) == (0.25, 0.35, 0.40)


# ── micronutrients ───────────────────────────────────────────────────
def test_pregnancy_raises_iron_and_folate():
    base = calc.calculate(FEMALE_55KG).target_data.micronutrients
    preg = calc.calculate(_with(FEMALE_55KG, pregnancy_status="pregnant")).target_data.micronutrients
    assert preg["iron_mg"] > base["iron_mg"]
    assert preg["folic_acid_ug"] > base["folic_acid_ug"]


def test_hypertension_sodium_ceiling():
    res = calc.calculate(_with(MALE_70KG, health_conditions=["hypertension"]))
    assert res.target_data.salt_equivalent_g == 6.0
    assert res.target_data.sodium_mg <= 2362
    assert res.target_data.micronutrients["potassium_mg"] == 3500


def test_anemia_never_lowers_pregnancy_iron():
    res = calc.calculate(_with(FEMALE_55KG, pregnancy_status="pregnant", health_conditions=["anemia"]))
    assert res.target_data.micronutrients["iron_mg"] == 21.5


def test_warfarin_sets_vitamin_k():
    res = calc.calculate(_with(MALE_70KG, medications=["Warfarin"]))
    assert res.target_data.micronutrients["vitamin_k_ug"] == 80


def test_references_cover_every_micronutrient():
    res = calc.calculate(MALE_70KG)
    refs = res.calculation_basis.references
    for code in res.target_data.micronutrients:
        assert refs[code].age_band == "30-49"
    assert res.calculation_basis.version == "dri2020_v1"


def test_all_targets_non_negative():
    t = calc.calculate(FEMALE_55KG).target_data
    scalars = t.model_dump(exclude={"user_id", "micronutrients"})
    assert all(v >= 0 for v in scalars.values())
    assert all(v >= 0 for v in t.micronutrients.values())


# ── determinism / tags / defaults ───────────────────────────────────
def test_idempotent():
    p = _with(FEMALE_55KG, health_conditions=["hypertension", "anemia"])
    assert calc.calculate(p).model_dump() == calc.calculate(p).model_dump()


def test_unknown_tags_ignored():
    plain = calc.calculate(MALE_70KG).target_data
    tagged = calc.calculate(_with(MALE_70KG, health_conditions=["made_up"], medications=["nothing"])).target_data
    assert plain == tagged


def test_japanese_condition_tag():
    res = calc.calculate(_with(MALE_70KG, health_conditions=["高血圧"]))
    assert res.target_data.salt_equivalent_g == 6.0


def test_defaults_are_recorded():
    basis = calc.calculate({"age": 40, "gender": "female", "height": 158.0, "weight": 52.0}).calculation_basis
    assert "work_style" in basis.missing_fields
    assert basis.defaults_applied["work_style"] == "sedentary"
    assert basis.defaults_applied["exercise_duration_per_session"] == 60


def test_module_shortcut_matches_instance():
    assert calculate_nutrition_targets(MALE_70KG) == calc.calculate(MALE_70KG)


# ── errors ───────────────────────────────────────────────────────────
@pytest.mark.parametrize("missing", ["age", "gender", "height", "weight"])
def test_missing_required_field(missing):
    p = {k: v for k, v in MALE_70KG.items() if k != missing}
    with pytest.raises(ProfileValidationError) as err:
        calc.calculate(p)
    assert missing in err.value.fields


@pytest.mark.parametrize("age", ["30", True, 30.5])
def test_wrong_type_age(age):
    with pytest.raises(ProfileValidationError) as err:
        calc.calculate(_with(MALE_70KG, age=age))
    assert err.value.fields == ["age"]


def test_non_mapping_profile():
    with pytest.raises(ProfileValidationError):
        calc.calculate(["age", 30])


def test_overflow_raises_computation_error():
    with pytest.raises(ComputationError):
        calc.calculate(_with(MALE_70KG, weight=1e308))


@pytest.mark.parametrize(
    "helper, field",
    [
        ("bmr", "age"),
        ("tdee", "age"),
        ("pal", "exercise_frequency"),
        ("calculate", "exercise_frequency"),
    ],
)
def test_huge_integers_raise_computation_error(helper, field):
    with pytest.raises(ComputationError):
        getattr(calc, helper)(_with(MALE_70KG, exercise_intensity="light", **{field: 10 ** 400}))
