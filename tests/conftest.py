"""
Shared pytest fixtures for the governance engine test suite.

Provides:
    - app: Flask application (session-scoped, "testing" config)
    - app_ctx: pushed application context (function-scoped)
    - settings: default EngineSettings
    - governed_record: camelCase use case record passing all three gates
    - make_record: factory returning governed_record with overrides applied
"""

import copy

import pytest

from governance_engine import create_app
from governance_engine.models.use_case import UseCase
from governance_engine.settings import EngineSettings


# A post-cutoff, fully governed, In-flight use case
_GOVERNED_RECORD = {
    "id": "uc-001",
    "title": "Claims triage assistant",
    "description": "Routes inbound claims to the right handler",
    "useCaseStatus": "In-flight",
    "deploymentStatus": "PoC",
    "createdAt": "2026-03-01T09:00:00Z",
    "primaryBusinessOwner": "Jordan Ellis",
    "businessFunction": "Claims",
    "revenueImpact": 4,
    "costSavings": 5,
    "riskReduction": 3,
    "brokerPartnerExperience": 4,
    "strategicFit": 5,
    "dataReadiness": 2,
    "technicalComplexity": 2,
    "changeImpact": 3,
    "modelRisk": 2,
    "adoptionReadiness": 1,
    "explainabilityRequired": "true",
    "humanAccountability": "true",
    "dataOutsideUkEu": "false",
    "thirdPartyModel": "false",
    "customerHarmRisk": "Low",
    "investmentCostGbp": 120000,
    "valueRealization": {"selectedKpis": ["Handling time"]},
    "capabilityTransition": {
        "independencePercentage": 40,
        "selfSufficiencyTarget": {"targetIndependence": 70},
    },
}


# ── App fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def settings():
    return EngineSettings()


# ── Use case fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def governed_record():
    """Fresh copy of a record that passes all three gates."""
    return copy.deepcopy(_GOVERNED_RECORD)


@pytest.fixture()
def make_record():
    """Factory: ``make_record(businessFunction="")`` → record dict.

    Keys set to ``None`` are removed from the record.
    """
    def _make(**overrides):
        record = copy.deepcopy(_GOVERNED_RECORD)
        for key, value in overrides.items():
            if value is None:
                record.pop(key, None)
            else:
                record[key] = value
        return record
    return _make


@pytest.fixture()
def make_use_case(make_record):
    """Factory returning a ``UseCase`` snapshot instead of a dict."""
    def _make(**overrides):
        return UseCase.from_dict(make_record(**overrides))
    return _make
