"""Domain records and configuration types consumed by the engine."""

from governance_engine.models.scoring import (  # noqa: F401
    EffortWeights,
    ImpactWeights,
    Quadrant,
    ScoringWeights,
)
from governance_engine.models.sizing import (  # noqa: F401
    DEFAULT_TSHIRT_SIZING_CONFIG,
    MappingRule,
    Role,
    TShirtSize,
    TShirtSizingConfig,
)
from governance_engine.models.tom import (  # noqa: F401
    DEFAULT_TOM_CONFIG,
    TomConfig,
    TomPhase,
    ensure_tom_config,
    merge_preset_profile,
)
from governance_engine.models.use_case import TriState, UseCase, parse_tri_state  # noqa: F401
