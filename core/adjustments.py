"""
core/adjustments.py
────────────────────────────────────────────────────────────────────────
Condition / medication rules as an ordered list of small records.

Each rule names a tag, the pipeline stage it runs in, the field it touches
and how:

    set    → value replaces the current one
    cap    → min(current, value)
    floor  → max(current, value)

Stages run in this order inside the calculator:

    ratio  – protein / fat energy shares; carbohydrate takes the rest
    cap    – macro grams, after ratio → grams and the protein floor
    micro  – micronutrients, after DRI baseline + pregnancy additions

Within a stage rules apply in list order. Unknown tags are ignored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal, MutableMapping

from core.models.target import Adjustment, HealthAdjustment
from core.reference_tables import SOURCES, salt_to_sodium_mg

_LOG = logging.getLogger(__name__)

Stage = Literal["ratio", "cap", "micro"]
Mode = Literal["set", "cap", "floor"]


@dataclass(frozen=True)
class Rule:
    tag: str
    kind: Literal["condition", "medication"]
    stage: Stage
    field: str
    mode: Mode
    value: float
    reason: str
    per_kg: bool = False          # value is multiplied by body weight
    source_url: str | None = None

    def target(self, weight_kg: float) -> float:
        return self.value * weight_kg if self.per_kg else self.value

    def apply(self, current: float, weight_kg: float) -> float:
        v = self.target(weight_kg)
        if self.mode == "cap":
            return min(current, v)
        if self.mode == "floor":
            return max(current, v)
        return v


HYPERTENSION_SALT_CEILING_G = 6.0
HYPERTENSION_SODIUM_CEILING_MG = round(salt_to_sodium_mg(HYPERTENSION_SALT_CEILING_G))
KIDNEY_PROTEIN_CEILING_G_PER_KG = 0.8

_url = {k: s.url for k, s in SOURCES.items()}

RULES: tuple[Rule, ...] = (
    # ── ratio stage ──────────────────────────────────────────────
    Rule("diabetes", "condition", "ratio", "protein", "set", 0.25,
         "diabetes: protein share 25 %", source_url=_url["diabetes"]),
    Rule("diabetes", "condition", "ratio", "fat", "set", 0.35,
         "diabetes: fat share 35 %", source_url=_url["diabetes"]),
    Rule("dyslipidemia", "condition", "ratio", "fat", "cap", 0.20,
         "dyslipidemia: fat share limited to 20 %", source_url=_url["dyslipidemia"]),
    Rule("kidney_disease", "condition", "ratio", "protein", "cap", 0.15,
         "kidney disease: protein share limited to 15 %", source_url=_url["ckd"]),
    # ── cap stage ────────────────────────────────────────────────
    Rule("kidney_disease", "condition", "cap", "protein_g", "cap",
         KIDNEY_PROTEIN_CEILING_G_PER_KG,
         "kidney disease: protein ≤ 0.8 g per kg body weight",
         per_kg=True, source_url=_url["ckd"]),
    # ── micro stage ──────────────────────────────────────────────
    Rule("hypertension", "condition", "micro", "salt_equivalent_g", "cap",
         HYPERTENSION_SALT_CEILING_G, "hypertension: salt ≤ 6 g/day",
         source_url=_url["hypertension"]),
    Rule("hypertension", "condition", "micro", "potassium_mg", "floor", 3500,
         "hypertension: raise potassium to promote sodium excretion",
         source_url=_url["hypertension"]),
    Rule("dyslipidemia", "condition", "micro", "cholesterol_mg", "cap", 200,
         "dyslipidemia: cholesterol ≤ 200 mg/day", source_url=_url["dyslipidemia"]),
    Rule("diabetes", "condition", "micro", "sugar_g", "cap", 25,
         "diabetes: limit sugars", source_url=_url["diabetes"]),
    Rule("diabetes", "condition", "micro", "fiber_g", "floor", 25,
         "diabetes: raise dietary fibre", source_url=_url["diabetes"]),
    Rule("kidney_disease", "condition", "micro", "potassium_mg", "cap", 2000,
         "kidney disease: limit potassium", source_url=_url["ckd"]),
    Rule("kidney_disease", "condition", "micro", "phosphorus_mg", "cap", 700,
         "kidney disease: limit phosphorus", source_url=_url["ckd"]),
    Rule("heart_disease", "condition", "micro", "salt_equivalent_g", "cap", 6.0,
         "heart disease: salt ≤ 6 g/day"),
    Rule("heart_disease", "condition", "micro", "cholesterol_mg", "cap", 200,
         "heart disease: cholesterol ≤ 200 mg/day"),
    Rule("osteoporosis", "condition", "micro", "calcium_mg", "floor", 1000,
         "osteoporosis: raise calcium"),
    Rule("anemia", "condition", "micro", "iron_mg", "floor", 15,
         "anemia: raise iron"),
    Rule("warfarin", "medication", "micro", "vitamin_k_ug", "set", 80,
         "warfarin: hold vitamin K at a steady amount"),
    Rule("antihypertensive", "medication", "micro", "potassium_mg", "cap", 2500,
         "ACE-inhibitor antihypertensive: avoid excess potassium"),
)

CONDITION_ALIASES = {
    "高血圧": "hypertension",
    "high_blood_pressure": "hypertension",
    "糖尿病": "diabetes",
    "type_2_diabetes": "diabetes",
    "脂質異常症": "dyslipidemia",
    "hyperlipidemia": "dyslipidemia",
    "high_cholesterol": "dyslipidemia",
    "腎臓病": "kidney_disease",
    "ckd": "kidney_disease",
    "chronic_kidney_disease": "kidney_disease",
    "心臓病": "heart_disease",
    "骨粗しょう症": "osteoporosis",
    "貧血": "anemia",
    "anaemia": "anemia",
}

MEDICATION_ALIASES = {
    "ワーファリン": "warfarin",
    "ace_inhibitor": "antihypertensive",
    "降圧剤": "antihypertensive",
}

KNOWN_CONDITIONS = frozenset(r.tag for r in RULES if r.kind == "condition")
KNOWN_MEDICATIONS = frozenset(r.tag for r in RULES if r.kind == "medication")


def canonical_tags(tags: Iterable[str], kind: Literal["condition", "medication"]) -> list[str]:
    """Map raw tags onto rule tags; unknown tags are dropped, order preserved."""
    aliases = CONDITION_ALIASES if kind == "condition" else MEDICATION_ALIASES
    known = KNOWN_CONDITIONS if kind == "condition" else KNOWN_MEDICATIONS
    out: list[str] = []
    for raw in tags:
        tag = raw.strip().lower().replace(" ", "_").replace("-", "_")
        tag = aliases.get(tag, aliases.get(raw.strip(), tag))
        if tag in known and tag not in out:
            out.append(tag)
        elif tag not in known:
            _LOG.debug("ignoring unrecognised %s tag %r", kind, raw)
    return out


def apply_rules(
    stage: Stage,
    values: MutableMapping[str, float],
    active: Iterable[str],
    weight_kg: float,
    rules: tuple[Rule, ...] = RULES,
) -> list[HealthAdjustment]:
    """
    Run every rule of ``stage`` whose tag is active, mutating ``values`` in
    place. Returns the changes grouped by tag, in rule order; rules that
    leave a value unchanged are not reported.
    """
    active = set(active)
    grouped: dict[str, list[Adjustment]] = {}
    for rule in rules:
        if rule.stage != stage or rule.tag not in active or rule.field not in values:
            continue
        before = values[rule.field]
        after = rule.apply(before, weight_kg)
        if after == before:
            continue
        values[rule.field] = after
        _LOG.debug("rule %s/%s: %s %s → %s", rule.tag, stage, rule.field, before, after)
        grouped.setdefault(rule.tag, []).append(
            Adjustment(
                nutrient=rule.field,
                original=before,
                adjusted=after,
                reason=rule.reason,
                source_url=rule.source_url,
            )
        )
    return [HealthAdjustment(condition=tag, adjustments=adj) for tag, adj in grouped.items()]
