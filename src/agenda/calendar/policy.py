"""Role-based visibility policies, one per calendar source.

Each policy maps an ``Actor`` (plus an optional explicit set of target user
ids) to a ``VisibilityPredicate`` describing which records of that source the
actor may see. Predicates are plain data: the storage layer renders them into
its own query language, and ``VisibilityPredicate.matches`` evaluates them in
memory.

Ownership differs per source:

- generic events and time-off requests are owned through their calendar
  (``OwnerRelation.CALENDAR_OWNER``);
- interventions are owned by the directly-assigned user
  (``OwnerRelation.ASSIGNED_USER``).

Service-scoped roles always match on the *owner's* service, for both
calendar-backed sources.

Trust boundary: an explicit ``target_user_ids`` override replaces the role
rules entirely. Whether the actor may request an override is decided by the
permission layer in front of this service, not here.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from agenda.calendar.records import SourceTag

logger = logging.getLogger(__name__)


class Role(enum.StrEnum):
    """Closed set of ERP roles.

    ``UNKNOWN`` stands for any role name this service does not recognize.
    """

    ADMIN = "ADMIN"
    GENERAL_DIRECTOR = "GENERAL_DIRECTOR"
    SERVICE_MANAGER = "SERVICE_MANAGER"
    EMPLOYEE = "EMPLOYEE"
    ACCOUNTANT = "ACCOUNTANT"
    PURCHASING_MANAGER = "PURCHASING_MANAGER"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> Role:
        """Map a role name to a member, falling back to ``UNKNOWN``."""
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            logger.warning("Unrecognized role %r; applying owner-only visibility", value)
            return cls.UNKNOWN


class Scope(enum.StrEnum):
    """What a role may see when no explicit override is given."""

    ALL = "all"
    SERVICE = "service"
    SELF = "self"


class OwnerRelation(enum.StrEnum):
    """How a source record is tied to its owning user."""

    CALENDAR_OWNER = "calendar_owner"
    ASSIGNED_USER = "assigned_user"


# Every Role member is listed on purpose; a new role must be added here.
ROLE_SCOPES: dict[Role, Scope] = {
    Role.ADMIN: Scope.ALL,
    Role.GENERAL_DIRECTOR: Scope.SERVICE,
    Role.SERVICE_MANAGER: Scope.SERVICE,
    Role.EMPLOYEE: Scope.SELF,
    # Financial-event carve-outs would extend this role's scope.
    Role.ACCOUNTANT: Scope.SELF,
    Role.PURCHASING_MANAGER: Scope.SELF,
    Role.UNKNOWN: Scope.SELF,
}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller for one request."""

    id: int
    role: Role
    service_id: int | None = None

    @classmethod
    def from_claims(cls, user_id: int, role: str | None, service_id: int | None = None) -> Actor:
        return cls(id=user_id, role=Role.parse(role), service_id=service_id)


@dataclass(frozen=True)
class VisibilityPredicate:
    """Source-specific "may see" filter.

    A record is visible when the predicate is ``unrestricted``, when its owner
    is in ``owner_ids``, or when ``service_id`` is set and the owner belongs to
    that service.
    """

    source: SourceTag
    relation: OwnerRelation
    unrestricted: bool = False
    owner_ids: frozenset[int] = frozenset()
    service_id: int | None = None

    def matches(self, owner_id: int, owner_service_id: int | None) -> bool:
        if self.unrestricted:
            return True
        if owner_id in self.owner_ids:
            return True
        return self.service_id is not None and owner_service_id == self.service_id


def scope_for(actor: Actor) -> Scope:
    """Resolve the effective scope of *actor*.

    Service-scoped roles without a service fall back to ``Scope.SELF``.
    """
    scope = ROLE_SCOPES.get(actor.role, Scope.SELF)
    if scope is Scope.SERVICE and actor.service_id is None:
        return Scope.SELF
    return scope


def _build_predicate(
    actor: Actor,
    target_user_ids: Iterable[int] | None,
    source: SourceTag,
    relation: OwnerRelation,
) -> VisibilityPredicate:
    targets = frozenset(target_user_ids or ())
    if targets:
        return VisibilityPredicate(source=source, relation=relation, owner_ids=targets)

    scope = scope_for(actor)
    if scope is Scope.ALL:
        return VisibilityPredicate(source=source, relation=relation, unrestricted=True)
    if scope is Scope.SERVICE:
        return VisibilityPredicate(
            source=source,
            relation=relation,
            owner_ids=frozenset({actor.id}),
            service_id=actor.service_id,
        )
    return VisibilityPredicate(source=source, relation=relation, owner_ids=frozenset({actor.id}))


def calendar_event_visibility(
    actor: Actor, target_user_ids: Iterable[int] | None = None
) -> VisibilityPredicate:
    """Visibility of generic calendar events, keyed on the calendar owner."""
    return _build_predicate(
        actor, target_user_ids, SourceTag.CALENDAR_EVENT, OwnerRelation.CALENDAR_OWNER
    )


def time_off_visibility(
    actor: Actor, target_user_ids: Iterable[int] | None = None
) -> VisibilityPredicate:
    """Visibility of time-off requests, keyed on the owning calendar's user."""
    return _build_predicate(actor, target_user_ids, SourceTag.TIMEOFF, OwnerRelation.CALENDAR_OWNER)


def intervention_visibility(
    actor: Actor, target_user_ids: Iterable[int] | None = None
) -> VisibilityPredicate:
    """Visibility of interventions, keyed on the directly-assigned user."""
    return _build_predicate(
        actor, target_user_ids, SourceTag.INTERVENTION, OwnerRelation.ASSIGNED_USER
    )
