"""Ordered substring rules used to classify chat message text."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductRule:
    """One product category and the case-insensitive substrings that signal it."""

    key: str
    label: str
    patterns: tuple[str, ...]


# Evaluated in order; the first match wins when a message names several products.
PRODUCT_RULES: tuple[ProductRule, ...] = (
    ProductRule(key="puertas", label="Puertas", patterns=("puerta",)),
    ProductRule(key="barandas", label="Barandas", patterns=("baranda",)),
    ProductRule(key="portones", label="Portones", patterns=("porton", "portón")),
)

# Heuristic: phrasing drift in bot replies produces false negatives.
APPOINTMENT_CONFIRMATION_PHRASES: tuple[str, ...] = (
    "cita agendada",
    "agendado",
    "te esperamos",
    "✅ listo",
)


def rule_rank(label: str, rules: tuple[ProductRule, ...] = PRODUCT_RULES) -> int:
    """Return the priority position of a category label, unknown labels last."""

    for index, rule in enumerate(rules):
        if rule.label == label:
            return index
    return len(rules)
