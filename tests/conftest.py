import pytest

from hazid_core.models import Cause, Consequence, Hazard, Measure, Recommendation, Risk
from hazid_core.risk_matrix import RiskMatrix
from hazid_core.store import DictKeyValueStore, HazardStore


def _measures(*texts: str) -> list:
    return [Measure(text=t) for t in texts]


@pytest.fixture
def default_matrix() -> RiskMatrix:
    """Standard 5x5 matrix with low/medium/high levels."""
    return RiskMatrix.default()


@pytest.fixture
def workshop_hazard() -> Hazard:
    """Causes A (2 measures), B (1) against consequences X (1), Y (3)."""
    return Hazard(
        title="Loss of containment",
        description="Flange leak at pump P-101",
        causes=[
            Cause(text="A", prevention_measures=_measures("A1", "A2")),
            Cause(text="B", prevention_measures=_measures("B1")),
        ],
        consequences=[
            Consequence(
                text="X",
                mitigation_measures=_measures("X1"),
                risk=Risk(severity_category="personnel", severity_level="5", likelihood_level="E"),
            ),
            Consequence(
                text="Y",
                mitigation_measures=_measures("Y1", "Y2", "Y3"),
                risk=Risk(severity_category="asset", severity_level="1", likelihood_level="A"),
            ),
        ],
        recommendations=[
            Recommendation(action="Install leak detection", responsible="Ops"),
            Recommendation(action="Review gasket selection", responsible="Mech"),
        ],
    )


@pytest.fixture
def kv() -> DictKeyValueStore:
    return DictKeyValueStore()


@pytest.fixture
def store(kv: DictKeyValueStore, workshop_hazard: Hazard) -> HazardStore:
    s = HazardStore(kv)
    s.hazards = [workshop_hazard]
    return s
