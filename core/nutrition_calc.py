"""
core/nutrition_calc.py
────────────────────────────────────────────────────────────────────────
Profile → daily nutrition targets. Pure and deterministic: no clock, no I/O.

1. BMR   (Mifflin–St Jeor)
2. PAL   (work-style base + exercise addition, clamped 1.2–2.4)
3. TDEE  = BMR × PAL
4. Goal  (±|kg/week| × 7700 / 7, or +300 for performance) + pregnancy / lactation
5. PFC   (goal ratios → condition ratio rules → grams → protein floor → caps
          → fat floor; carbohydrate takes the remaining energy)
6. Micro (DRI 2020 baseline → pregnancy additions → condition/medication rules)

Every intermediate lands in ``calculation_basis`` so the chain can be checked
without re-deriving it.
"""
from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from core.adjustments import RULES, Rule, apply_rules, canonical_tags
from core.errors import ComputationError
from core.models.profile import Gender, NutritionGoal, PregnancyStatus, Profile
from core.models.target import (
    Adjustment,
    BMRBasis,
    CalculationBasis,
    EnergyBasis,
    GoalAdjustment,
    Guardrail,
    HealthAdjustment,
    MacroGrams,
    MacroRatios,
    MacrosBasis,
    NutrientReference,
    NutritionCalculationResult,
    NutritionTarget,
    NutritionTargetSummary,
    PALBasis,
    UpperLimit,
)
from core.reference_tables import (
    BMR_SEX_CONSTANT,
    CHOLESTEROL_DEFAULT_MG,
    DRI_TABLES,
    EXERCISE_BONUS,
    FAT_FLOOR_SHARE,
    GROWTH_AGE_LIMIT,
    GROWTH_MIN_KCAL,
    KCAL_PER_G_CARBS,
    KCAL_PER_G_FAT,
    KCAL_PER_G_PROTEIN,
    KCAL_PER_KG_BODY_MASS,
    LOW_ENERGY_WARNING_KCAL,
    MACRO_RATIOS,
    MONOUNSATURATED_FAT_SHARE,
    PAL_MAX,
    PAL_MIN,
    PERFORMANCE_SURPLUS_KCAL,
    POLYUNSATURATED_FAT_SHARE,
    PREGNANCY_ENERGY_KCAL,
    PROTEIN_FLOOR_G_PER_KG,
    REFERENCE_SESSION_MINUTES,
    REFERENCE_SESSIONS_PER_WEEK,
    SATURATED_FAT_SHARE,
    SOURCES,
    SUGAR_ENERGY_SHARE,
    TABLE_VERSION,
    WORK_STYLE_PAL,
    age_band,
    dri_value,
    salt_to_sodium_mg,
    upper_limit,
)

Logger = logging.getLogger(__name__)

# reported inside `target_data`, not in the micronutrient map
_TOP_LEVEL = ("fiber_g", "salt_equivalent_g")


def _finite(step: str, value: float) -> float:
    if not math.isfinite(value):
        raise ComputationError(step, value)
    return value


@contextmanager
def _overflow_guard(step: str) -> Iterator[None]:
    try:
        yield
    except OverflowError as exc:
        raise ComputationError(step, math.inf) from exc


# below this many kcal, 0.1 g steps are coarser than the 1 % macro tolerance
_FINE_ROUNDING_BELOW_KCAL = 100


def _macro_digits(calories: float) -> int:
    return 1 if calories >= _FINE_ROUNDING_BELOW_KCAL else 3


def _round_down(x: float, digits: int) -> float:
    scale = 10 ** digits
    return math.floor(x * scale) / scale


def _round_within(x: float, limit: float, digits: int) -> float:
    """Round ``x`` to ``digits`` without going above ``limit``."""
    r = round(x, digits)
    return r if r <= limit else _round_down(min(x, limit), digits)


class NutritionalCalculator:
    """Source-of-truth for kcal, macros and micronutrient targets."""

    def __init__(self, rules: tuple[Rule, ...] = RULES) -> None:
        self._rules = rules

    # --------------- public entrypoint --------------------------------
    def calculate(self, profile: Profile | Mapping[str, Any]) -> NutritionCalculationResult:
        p = Profile.parse(profile)
        warnings: list[str] = []
        guardrails: list[Guardrail] = []

        conditions = canonical_tags(p.health_conditions, "condition")
        medications = canonical_tags(p.medications, "medication")
        pregnancy = self._effective_pregnancy(p, warnings)

        with _overflow_guard("calculate"):
            energy = self._energy(p, pregnancy, warnings, guardrails)
            calories = energy.final_kcal
            macros, grams, cap_adjustments = self._macros(p, calories, conditions, guardrails)
            micro = self._micros(p, pregnancy, calories, conditions + medications, warnings)

        values, references, micro_adjustments, upper_limits = micro
        fiber = values["fiber_g"]
        salt = values["salt_equivalent_g"]
        sodium = float(round(salt_to_sodium_mg(salt)))

        target = NutritionTarget(
            user_id=p.user_id,
            calories=calories,
            protein_g=grams["protein_g"],
            fat_g=grams["fat_g"],
            carbs_g=grams["carbs_g"],
            fiber_g=fiber,
            fiber_soluble_g=round(fiber / 3, 1),
            fiber_insoluble_g=round(fiber * 2 / 3, 1),
            sodium_mg=sodium,
            salt_equivalent_g=salt,
            sugar_g=values["sugar_g"],
            cholesterol_mg=values["cholesterol_mg"],
            saturated_fat_g=round(calories * SATURATED_FAT_SHARE / KCAL_PER_G_FAT, 1),
            monounsaturated_fat_g=round(calories * MONOUNSATURATED_FAT_SHARE / KCAL_PER_G_FAT, 1),
            polyunsaturated_fat_g=round(calories * POLYUNSATURATED_FAT_SHARE / KCAL_PER_G_FAT, 1),
            micronutrients={
                k: v for k, v in values.items()
                if k in DRI_TABLES and k not in _TOP_LEVEL
            },
        )

        inputs = p.model_dump(mode="json")
        missing = p.defaulted_fields
        basis = CalculationBasis(
            version=TABLE_VERSION,
            inputs=inputs,
            missing_fields=missing,
            defaults_applied={name: inputs[name] for name in missing},
            energy=energy,
            macros=macros,
            references=references,
            upper_limits=upper_limits,
            health_adjustments=cap_adjustments + micro_adjustments,
            guardrails=guardrails,
            warnings=warnings,
        )
        summary = NutritionTargetSummary(
            calories=calories,
            protein=target.protein_g,
            fat=target.fat_g,
            carbs=target.carbs_g,
            fiber=fiber,
            sodium=sodium,
            bmr=energy.bmr.result_kcal,
            pal=energy.pal.result,
            tdee=energy.tdee_kcal,
            goal=p.nutrition_goal.value,
        )
        Logger.debug(
            "targets user=%s bmr=%.1f pal=%.3f tdee=%.1f kcal=%.0f P/F/C=%.1f/%.1f/%.1f",
            p.user_id, summary.bmr, summary.pal, summary.tdee, calories,
            target.protein_g, target.fat_g, target.carbs_g,
        )
        return NutritionCalculationResult(
            target_data=target, summary=summary, calculation_basis=basis
        )

    # --------------- BMR / PAL / TDEE --------------------------------
    def bmr(self, profile: Profile | Mapping[str, Any]) -> float:
        p = Profile.parse(profile)
        with _overflow_guard("bmr"):
            return self._bmr(p).result_kcal

    def pal(self, profile: Profile | Mapping[str, Any]) -> float:
        p = Profile.parse(profile)
        with _overflow_guard("pal"):
            return self._pal(p).result

    def tdee(self, profile: Profile | Mapping[str, Any]) -> float:
        p = Profile.parse(profile)
        with _overflow_guard("tdee"):
            return _finite("tdee", self._bmr(p).result_kcal * self._pal(p).result)

    def _bmr(self, p: Profile) -> BMRBasis:
        c = BMR_SEX_CONSTANT[p.gender]
        sign = "+" if c >= 0 else "−"
        value = _finite("bmr", 10 * p.weight + 6.25 * p.height - 5 * p.age + c)
        return BMRBasis(
            formula=f"10×weight + 6.25×height − 5×age {sign} {abs(c):g}",
            substituted=f"10×{p.weight:g} + 6.25×{p.height:g} − 5×{p.age} {sign} {abs(c):g}",
            sex_constant=c,
            result_kcal=round(value, 2),
        )

    def _pal(self, p: Profile) -> PALBasis:
        base = WORK_STYLE_PAL[p.work_style]
        bonus = EXERCISE_BONUS[p.exercise_intensity]
        addition = (
            bonus
            * (p.exercise_frequency / REFERENCE_SESSIONS_PER_WEEK)
            * (p.exercise_duration_per_session / REFERENCE_SESSION_MINUTES)
        )
        raw = _finite("pal", base + addition)
        clamped = min(max(raw, PAL_MIN), PAL_MAX)
        return PALBasis(
            work_style=p.work_style.value,
            base_from_work_style=base,
            exercise_intensity=p.exercise_intensity.value,
            exercise_bonus=bonus,
            exercise_frequency=p.exercise_frequency,
            exercise_duration_min=p.exercise_duration_per_session,
            exercise_addition=round(addition, 4),
            raw=round(raw, 4),
            capped=raw > PAL_MAX,
            floored=raw < PAL_MIN,
            result=round(clamped, 3),
        )

    # --------------- energy ------------------------------------------
    @staticmethod
    def _effective_pregnancy(p: Profile, warnings: list[str]) -> PregnancyStatus:
        status = p.pregnancy_status
        if status is not PregnancyStatus.none and p.gender is Gender.male:
            warnings.append(
                f"pregnancy_status '{status.value}' ignored for a male profile"
            )
            return PregnancyStatus.none
        return status

    def _goal(self, p: Profile, warnings: list[str]) -> GoalAdjustment:
        rate = abs(p.weight_change_rate)
        per_day = rate * KCAL_PER_KG_BODY_MASS / 7
        goal = p.nutrition_goal

        if goal is NutritionGoal.lose:
            delta, reason = -per_day, f"lose {rate:g} kg/week × 7700 kcal/kg ÷ 7"
        elif goal is NutritionGoal.gain:
            delta, reason = per_day, f"gain {rate:g} kg/week × 7700 kcal/kg ÷ 7"
        elif goal is NutritionGoal.performance:
            delta = PERFORMANCE_SURPLUS_KCAL
            reason = f"performance: fixed +{PERFORMANCE_SURPLUS_KCAL:g} kcal"
        else:
            delta, reason = 0.0, "maintain"

        if goal in (NutritionGoal.lose, NutritionGoal.gain) and rate == 0:
            warnings.append(f"goal '{goal.value}' with weight_change_rate 0: no energy change")

        return GoalAdjustment(
            goal=goal.value,
            weight_change_rate_kg_per_week=p.weight_change_rate,
            delta_kcal=round(_finite("goal_delta", delta), 2),
            reason=reason,
        )

    def _energy(
        self,
        p: Profile,
        pregnancy: PregnancyStatus,
        warnings: list[str],
        guardrails: list[Guardrail],
    ) -> EnergyBasis:
        bmr = self._bmr(p)
        pal = self._pal(p)
        tdee = _finite("tdee", bmr.result_kcal * pal.result)
        goal = self._goal(p, warnings)
        pregnancy_delta = PREGNANCY_ENERGY_KCAL.get(pregnancy.value, 0.0)

        raw = _finite("calories", tdee + goal.delta_kcal + pregnancy_delta)
        floored = raw < 0
        calories = float(round(max(raw, 0.0)))

        # advisory only: the target itself is never raised
        low = LOW_ENERGY_WARNING_KCAL[p.gender]
        if calories < low:
            reason = f"energy target {calories:.0f} kcal is below {low:.0f} kcal"
            warnings.append(reason)
            guardrails.append(Guardrail(
                type="calorie_minimum", severity="warning",
                original=calories, threshold=low, reason=reason,
            ))
        if p.age < GROWTH_AGE_LIMIT:
            growth = GROWTH_MIN_KCAL[p.gender]
            if calories < growth:
                reason = (
                    f"under {GROWTH_AGE_LIMIT}: energy target {calories:.0f} kcal "
                    f"is below the growth minimum {growth:.0f} kcal"
                )
                warnings.append(reason)
                guardrails.append(Guardrail(
                    type="growth_protection", severity="critical",
                    original=calories, threshold=growth, reason=reason,
                ))
            if p.nutrition_goal is NutritionGoal.lose:
                reason = f"under {GROWTH_AGE_LIMIT}: weight-loss goals are not recommended"
                warnings.append(reason)
                guardrails.append(Guardrail(
                    type="growth_protection", severity="critical", reason=reason,
                ))

        return EnergyBasis(
            bmr=bmr,
            pal=pal,
            tdee_kcal=round(tdee, 2),
            goal_adjustment=goal,
            pregnancy_delta_kcal=pregnancy_delta,
            energy_floor_applied=floored,
            final_kcal=calories,
        )

    # --------------- macros ------------------------------------------
    def _macros(
        self,
        p: Profile,
        calories: float,
        conditions: list[str],
        guardrails: list[Guardrail],
    ) -> tuple[MacrosBasis, dict[str, float], list[HealthAdjustment]]:
        base = MACRO_RATIOS[p.nutrition_goal]
        ratios = base._asdict()
        overrides: list[Adjustment] = []

        for group in apply_rules("ratio", ratios, conditions, p.weight, self._rules):
            overrides.extend(group.adjustments)
        carbs_share = round(max(0.0, 1.0 - ratios["protein"] - ratios["fat"]), 4)
        if abs(carbs_share - ratios["carbs"]) > 1e-9:
            overrides.append(Adjustment(
                nutrient="carbs",
                original=ratios["carbs"],
                adjusted=carbs_share,
                reason="carbohydrate takes the remaining energy share",
            ))
        ratios["carbs"] = carbs_share

        grams = {
            "protein_g": calories * ratios["protein"] / KCAL_PER_G_PROTEIN,
            "fat_g": calories * ratios["fat"] / KCAL_PER_G_FAT,
        }
        method = "ratio"

        protein_floor = PROTEIN_FLOOR_G_PER_KG * p.weight
        if grams["protein_g"] < protein_floor:
            overrides.append(Adjustment(
                nutrient="protein_g",
                original=round(grams["protein_g"], 1),
                adjusted=round(protein_floor, 1),
                reason=f"weight-based floor ({p.weight:g} kg × {PROTEIN_FLOOR_G_PER_KG} g)",
            ))
            grams["protein_g"] = protein_floor
            method = "mixed"

        # caps run after the floor so they always win
        cap_adjustments = apply_rules("cap", grams, conditions, p.weight, self._rules)
        limited = bool(cap_adjustments)
        if limited:
            method = "mixed"

        # protein and fat never round above the energy left for them, so
        # carbohydrate (the remainder) is never clamped
        digits = _macro_digits(calories)

        protein = max(grams["protein_g"], 0.0)
        protein_cap = calories / KCAL_PER_G_PROTEIN
        if protein > protein_cap:
            overrides.append(Adjustment(
                nutrient="protein_g",
                original=round(protein, 1),
                adjusted=round(protein_cap, 1),
                reason="protein limited to the energy target",
            ))
            protein = protein_cap
            limited = True
        if limited:
            protein_g = _round_down(protein, digits)
        else:
            protein_g = _round_within(protein, protein_cap, digits)
        _finite("protein_g", protein_g)

        remaining = max(0.0, calories - protein_g * KCAL_PER_G_PROTEIN)
        fat_cap = remaining / KCAL_PER_G_FAT
        fat = max(grams["fat_g"], 0.0)

        fat_floor = min(calories * FAT_FLOOR_SHARE / KCAL_PER_G_FAT, fat_cap)
        if fat < fat_floor:
            reason = f"fat floor: at least {FAT_FLOOR_SHARE:.0%} of energy"
            overrides.append(Adjustment(
                nutrient="fat_g",
                original=round(fat, 1),
                adjusted=round(fat_floor, 1),
                reason=reason,
            ))
            guardrails.append(Guardrail(
                type="fat_floor", severity="warning", applied=True,
                original=round(fat, 1), threshold=round(fat_floor, 1), reason=reason,
            ))
            fat = fat_floor
            method = "mixed"

        if fat > fat_cap:
            overrides.append(Adjustment(
                nutrient="fat_g",
                original=round(fat, 1),
                adjusted=round(fat_cap, 1),
                reason="fat limited to the energy left after protein",
            ))
            fat_g = _round_down(fat_cap, digits)
        else:
            fat_g = _round_within(fat, fat_cap, digits)
        _finite("fat_g", fat_g)

        carbs_g = round(
            max(0.0, (remaining - fat_g * KCAL_PER_G_FAT) / KCAL_PER_G_CARBS), digits
        )
        out = {"protein_g": protein_g, "fat_g": fat_g, "carbs_g": carbs_g}

        basis = MacrosBasis(
            method=method,
            ratios=MacroRatios(**ratios),
            grams=MacroGrams(protein=protein_g, fat=fat_g, carbs=carbs_g),
            overrides=overrides,
        )
        return basis, out, cap_adjustments

    # --------------- micronutrients ----------------------------------
    def _micros(
        self,
        p: Profile,
        pregnancy: PregnancyStatus,
        calories: float,
        tags: list[str],
        warnings: list[str],
    ) -> tuple[
        dict[str, float],
        dict[str, NutrientReference],
        list[HealthAdjustment],
        dict[str, UpperLimit],
    ]:
        band = age_band(p.age)
        status = None if pregnancy is PregnancyStatus.none else pregnancy.value

        values: dict[str, float] = {}
        baselines = {}
        for code in DRI_TABLES:
            dri = dri_value(code, band, p.gender, pregnancy.value)
            values[code] = dri.value
            baselines[code] = dri
        if any(d.band != band for d in baselines.values()):
            warnings.append(f"no DRI row for age band {band}; adult 30-49 values used")

        values["cholesterol_mg"] = CHOLESTEROL_DEFAULT_MG
        values["sugar_g"] = float(round(calories * SUGAR_ENERGY_SHARE / KCAL_PER_G_CARBS))

        adjustments = apply_rules("micro", values, tags, p.weight, self._rules)
        values = {k: round(v, 2) for k, v in values.items()}

        by_nutrient: dict[str, list[Adjustment]] = {}
        for group in adjustments:
            for adj in group.adjustments:
                by_nutrient.setdefault(adj.nutrient, []).append(adj)

        references: dict[str, NutrientReference] = {}
        for code, dri in baselines.items():
            references[code] = NutrientReference(
                basis_type=dri.basis_type,
                reference_value=dri.value,
                unit=dri.unit,
                age_band=dri.band,
                gender=p.gender.value,
                pregnancy_or_lactation=status,
                source_url=dri.source.url,
                source_title=dri.source.title,
                adjustments=by_nutrient.get(code, []),
                final_value=values[code],
            )
        app_defaults = (
            ("cholesterol_mg", "mg", CHOLESTEROL_DEFAULT_MG, SOURCES["energy_pfc"]),
            ("sugar_g", "g", float(round(calories * SUGAR_ENERGY_SHARE / KCAL_PER_G_CARBS)),
             SOURCES["who_sugars"]),
        )
        for code, unit, ref, source in app_defaults:
            references[code] = NutrientReference(
                basis_type="DG",
                reference_value=ref,
                unit=unit,
                age_band=band,
                gender=p.gender.value,
                pregnancy_or_lactation=status,
                source_url=source.url,
                source_title=source.title,
                adjustments=by_nutrient.get(code, []),
                final_value=values[code],
            )

        limits: dict[str, UpperLimit] = {}
        for code, entry in DRI_TABLES.items():
            ul = upper_limit(code, band, p.gender)
            if ul is None:
                continue
            limits[code] = UpperLimit(value=ul, unit=entry.unit)
            if values[code] > ul:
                warnings.append(f"{code} target {values[code]:g} exceeds upper limit {ul:g}")

        return values, references, adjustments, limits


_default = NutritionalCalculator()


def calculate_nutrition_targets(profile: Profile | Mapping[str, Any]) -> NutritionCalculationResult:
    """Module-level shortcut using the default rule set."""
    return _default.calculate(profile)
