"""Checklist rules: baseline inventory, quantity edits and form validation.

Everything here is a pure function of the values passed in. Derived flags are
recomputed by the caller on every read; the lists involved hold a handful of
items.

Copyright (c) Bryn Gwalad 2025
"""

import copy
import re
from typing import Iterable, List, Optional, Tuple

from api.models import InventoryItem, ItemCategory

# Justifications must be strictly longer than this
MIN_JUSTIFICATION_LENGTH = 10

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


BASELINE_ITEMS: Tuple[InventoryItem, ...] = (
    InventoryItem(id="1", name="Case Completo (35 unid)", category=ItemCategory.COMPUTERS, expected_quantity=35, current_quantity=35),
    InventoryItem(id="2", name="Projetor", category=ItemCategory.PERIPHERALS, expected_quantity=1, current_quantity=1),
    InventoryItem(id="3", name="Notebook", category=ItemCategory.PERIPHERALS, expected_quantity=1, current_quantity=1),
    InventoryItem(id="4", name="Extensão", category=ItemCategory.PERIPHERALS, expected_quantity=1, current_quantity=1),
    InventoryItem(id="5", name="Cabo HDMI", category=ItemCategory.CABLES, expected_quantity=1, current_quantity=1),
    InventoryItem(id="6", name="Adaptador HDMI", category=ItemCategory.CABLES, expected_quantity=1, current_quantity=1),
    InventoryItem(id="7", name="Cabo de Força", category=ItemCategory.CABLES, expected_quantity=1, current_quantity=1),
)


class ValidationFailure(ValueError):
    """Raised when the form is asked to proceed while a business rule fails."""


def baseline_items(baseline: Iterable[InventoryItem] = BASELINE_ITEMS) -> List[InventoryItem]:
    """Return a fresh working copy of the baseline list."""
    return [copy.deepcopy(item) for item in baseline]


def snapshot_items(items: Iterable[InventoryItem]) -> List[InventoryItem]:
    return [copy.deepcopy(item) for item in items]


def has_discrepancy(items: Iterable[InventoryItem]) -> bool:
    """True when at least one item was not found in its expected quantity."""
    return any(item.current_quantity != item.expected_quantity for item in items)


def is_submittable(
    teacher_name: str,
    signature: Optional[str],
    discrepancy: bool,
    justification: Optional[str],
) -> bool:
    """Decide whether the checklist may move on to the receipt preview.

    A teacher name and a signature are always required. When any quantity
    differs from the baseline the justification must also be longer than
    ``MIN_JUSTIFICATION_LENGTH`` characters.
    """
    if not teacher_name:
        return False
    if not signature:
        return False
    if not discrepancy:
        return True
    return len(justification or "") > MIN_JUSTIFICATION_LENGTH


def validation_message(
    teacher_name: str,
    signature: Optional[str],
    discrepancy: bool,
    justification: Optional[str],
) -> Optional[str]:
    """Return the hint shown under the preview button, or None when valid."""
    if not teacher_name:
        return "Nome do professor obrigatório"
    if not signature:
        return "Assinatura obrigatória"
    if discrepancy and len(justification or "") <= MIN_JUSTIFICATION_LENGTH:
        return "Justificativa muito curta"
    return None


def adjust_quantity(item: InventoryItem, delta: int) -> InventoryItem:
    """Apply a signed delta to ``item`` in place, never going below zero."""
    item.current_quantity = max(0, item.current_quantity + delta)
    return item


def parse_quantity(raw) -> int:
    """Parse a manually typed quantity.

    Mirrors a lenient integer parse: a leading integer is honoured
    ("12 unid" -> 12), anything else becomes 0 and negatives clamp to 0.
    """
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return max(0, raw)
    match = _LEADING_INT.match(str(raw or ""))
    if not match:
        return 0
    return max(0, int(match.group(1)))


def set_quantity(item: InventoryItem, raw) -> InventoryItem:
    item.current_quantity = parse_quantity(raw)
    return item
