"""State machines for the renewal run and for authorizations.

Defines the valid transitions of :class:`OrchestratorState` (one
renewal attempt) and of :class:`AuthorizationStatus` as seen by the
client.  All transitions are enforced via :func:`assert_transition`.

Usage::

    from acmerenew.core.state import ORCHESTRATOR_TRANSITIONS, assert_transition
    from acmerenew.core.types import OrchestratorState

    assert_transition(
        OrchestratorState.DECIDING, OrchestratorState.SKIPPED,
        ORCHESTRATOR_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from acmerenew.core.types import AuthorizationStatus, OrchestratorState

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Orchestrator: deciding → skipped/order-requested → validating →
#   all-valid → issuing → issued/issuance-failed
#   some-invalid → aborted
# ---------------------------------------------------------------------------

ORCHESTRATOR_TRANSITIONS: dict[OrchestratorState, frozenset[OrchestratorState]] = {
    OrchestratorState.DECIDING: frozenset(
        {OrchestratorState.SKIPPED, OrchestratorState.ORDER_REQUESTED},
    ),
    OrchestratorState.ORDER_REQUESTED: frozenset({OrchestratorState.VALIDATING}),
    OrchestratorState.VALIDATING: frozenset(
        {OrchestratorState.ALL_VALID, OrchestratorState.SOME_INVALID},
    ),
    OrchestratorState.ALL_VALID: frozenset({OrchestratorState.ISSUING}),
    OrchestratorState.SOME_INVALID: frozenset({OrchestratorState.ABORTED}),
    OrchestratorState.ISSUING: frozenset(
        {OrchestratorState.ISSUED, OrchestratorState.ISSUANCE_FAILED},
    ),
    OrchestratorState.SKIPPED: frozenset(),
    OrchestratorState.ABORTED: frozenset(),
    OrchestratorState.ISSUED: frozenset(),
    OrchestratorState.ISSUANCE_FAILED: frozenset(),
}

# ---------------------------------------------------------------------------
# Authorization: pending → valid/invalid/errored.  Others are terminal.
# ---------------------------------------------------------------------------

AUTHORIZATION_TRANSITIONS: dict[AuthorizationStatus, frozenset[AuthorizationStatus]] = {
    AuthorizationStatus.PENDING: frozenset(
        {
            AuthorizationStatus.VALID,
            AuthorizationStatus.INVALID,
            AuthorizationStatus.ERRORED,
        }
    ),
    AuthorizationStatus.VALID: frozenset(),
    AuthorizationStatus.INVALID: frozenset(),
    AuthorizationStatus.ERRORED: frozenset(),
}


_RESOURCE_TYPE_NAMES = {
    id(ORCHESTRATOR_TRANSITIONS): "renewal",
    id(AUTHORIZATION_TRANSITIONS): "authorization",
}


def assert_transition(
    current: OrchestratorState | AuthorizationStatus,
    target: OrchestratorState | AuthorizationStatus,
    table: dict,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current state.
    target:
        The desired new state.
    table:
        :data:`ORCHESTRATOR_TRANSITIONS` or
        :data:`AUTHORIZATION_TRANSITIONS`.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown state {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid {_RESOURCE_TYPE_NAMES.get(id(table), 'state')} transition "
            f"{current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)
    log.debug("Transition %s -> %s", current.value, target.value)


def is_terminal(
    state: OrchestratorState | AuthorizationStatus,
    table: dict,
) -> bool:
    """Return ``True`` if *state* has no outgoing transitions."""
    return not table.get(state)
