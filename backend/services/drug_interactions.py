"""Simple hardcoded drug interaction table for household medication warnings."""

from __future__ import annotations

from typing import Iterable

from models import Medicine

# Maps medicine name -> names it interacts with (all lowercase)
INTERACTION_TABLE: dict[str, set[str]] = {
    "aspirin": {"warfarin", "ibuprofen", "naproxen"},
    "warfarin": {"aspirin", "ibuprofen", "paracetamol"},
    "ibuprofen": {"aspirin", "warfarin", "lisinopril"},
    "paracetamol": {"warfarin"},
    "lisinopril": {"ibuprofen", "potassium supplements"},
    "simvastatin": {"clarithromycin", "erythromycin"},
    "clarithromycin": {"simvastatin"},
    "erythromycin": {"simvastatin"},
    "potassium supplements": {"lisinopril"},
    "metformin": {"alcohol"},
    "levothyroxine": {"calcium supplements", "iron supplements"},
    "calcium supplements": {"levothyroxine"},
    "iron supplements": {"levothyroxine"},
}


def _norm(name: str) -> str:
    return name.strip().lower()


def interacting_names(name: str) -> set[str]:
    return INTERACTION_TABLE.get(_norm(name), set())


def interacts(first: str, second: str) -> bool:
    """True when either name lists the other in the interaction table."""
    return _norm(second) in interacting_names(first) or _norm(first) in interacting_names(second)


def find_interactions(candidate_name: str, current_medicines: Iterable[Medicine]) -> list[str]:
    """Names of the tracked medicines that the candidate interacts with.

    Only the candidate's own table entry is consulted; a candidate missing from
    the table yields no interactions.
    """
    conflicts = interacting_names(candidate_name)
    if not conflicts:
        return []
    return [med.name for med in current_medicines if _norm(med.name) in conflicts]
