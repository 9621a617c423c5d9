# classifier.py
import re
from dataclasses import dataclass
from typing import Optional

from models import Domain

# Evaluated top to bottom, first match wins. The order is the tie-break:
# "resistor ... titration" is a titration command.
DOMAIN_PREDICATES = [
    (re.compile(r"titr|acid|\bph\b|equivalence|burette|neutrali[sz]"), Domain.TITRATION),
    (re.compile(r"vsepr|geometry|hybrid|bond angle|molecul|tetrahedral|octahedral|trigonal"), Domain.GEOMETRY),
    (re.compile(r"black hole|event horizon|accretion|\bdisk\b|relativity|\bisco\b|\bspin\b"), Domain.BLACK_HOLE),
    (re.compile(r"ohm['’]?s law|ohm law|\bi\s?[-–]?\s?v\b|\bsweep"), Domain.OHM),
    (re.compile(r"\brc\b|resistor|resistance|capacitor|capacitance|voltage|current|circuit"), Domain.RC),
]

_CREATE_RE = re.compile(r"\bcreate\b")


@dataclass
class Classification:
    domain: Optional[Domain]   # None when nothing in the text points anywhere
    switch: bool = False       # True when `domain` differs from the active one
    weak: bool = False         # Inferred from "create" only


class DomainClassifier:
    @staticmethod
    def classify(lower_text: str, active: Domain) -> Classification:
        for pattern, domain in DOMAIN_PREDICATES:
            if pattern.search(lower_text):
                return Classification(domain=domain, switch=domain != active)

        # "create" alone only confirms the lab already on screen
        if _CREATE_RE.search(lower_text):
            return Classification(domain=active, switch=False, weak=True)
        return Classification(domain=None)
