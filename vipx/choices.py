"""Choice lists derived from cached records, for dropdown-style selectors."""
from __future__ import annotations

from typing import Iterable, Union

from .models import Entity

CLEAR_LAYOUT = "null"

Choice = tuple[Union[int, str], str]


def id_choices(records: Iterable[Entity]) -> list[Choice]:
    """Choices keyed by id, labelled ``"<id> — <name>"``."""
    return [(r.id, f"{r.id} — {r.name}") for r in records]


def name_choices(records: Iterable[Entity]) -> list[Choice]:
    """Choices keyed by name, labelled ``"<name> (<id>)"``."""
    return [(r.name, f"{r.name} ({r.id})") for r in records]


def layout_choices(layouts: Iterable[Entity], by_name: bool = False) -> list[Choice]:
    """Layout choices with a leading option that clears the display."""
    choices = name_choices(layouts) if by_name else id_choices(layouts)
    return [(CLEAR_LAYOUT, "Clear (null)"), *choices]


def find_by_label(choices: Iterable[Choice], label: str) -> Union[int, str, None]:
    """Reverse lookup of a choice key from its label."""
    for key, choice_label in choices:
        if choice_label == label:
            return key
    return None
