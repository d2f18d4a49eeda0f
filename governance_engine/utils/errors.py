"""Standardised API error responses for engine outcomes.

Usage
-----
    from governance_engine.utils.errors import api_error, E

    return api_error(E.GOVERNANCE_INCOMPLETE, "Governance gates incomplete",
                     details=build_activation_blocked_response(result))
    return api_error(E.VALIDATION_INVALID, "useCaseStatus is required")
"""

from __future__ import annotations

from flask import jsonify

# Governance outcome codes, shared by API errors and result payloads
GOVERNANCE_INCOMPLETE = "GOVERNANCE_INCOMPLETE"
PHASE_TRANSITION_REQUIRES_JUSTIFICATION = "PHASE_TRANSITION_REQUIRES_JUSTIFICATION"
GOVERNANCE_REGRESSION = "GOVERNANCE_REGRESSION"


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • bare upper-case codes for governance outcomes (shared with result payloads)
    """

    # Validation – HTTP 400
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Server – HTTP 500
    CONFIGURATION = "ERR_CONFIGURATION"
    INTERNAL = "ERR_INTERNAL"

    # Governance
    GOVERNANCE_INCOMPLETE = GOVERNANCE_INCOMPLETE
    PHASE_TRANSITION_REQUIRES_JUSTIFICATION = PHASE_TRANSITION_REQUIRES_JUSTIFICATION
    GOVERNANCE_REGRESSION = GOVERNANCE_REGRESSION


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.CONFIGURATION: 500,
    E.INTERNAL: 500,
    E.GOVERNANCE_INCOMPLETE: 422,
    E.PHASE_TRANSITION_REQUIRES_JUSTIFICATION: 409,
    E.GOVERNANCE_REGRESSION: 409,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for callers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Structured payload (gate breakdown, pending exit requirements, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)``; must be called inside an app context.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
