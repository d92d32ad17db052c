"""AuthorizationGate — decides whether an actor may perform a lifecycle action.

Capabilities are resolved once from the identity store into an immutable
value object; ``authorize`` itself is a pure function over that object.
"""
import enum
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import settings
from app.models.actor import Actor
from app.services.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    create = "create"
    transition = "transition"
    add_note = "add_note"


# Scope strings granted to an actor that unlock each action.
# "manage" is the umbrella scope for status changes and notes.
ACTION_SCOPES: dict[Action, frozenset[str]] = {
    Action.create: frozenset({"schedule"}),
    Action.transition: frozenset({"status", "manage"}),
    Action.add_note: frozenset({"notes", "manage"}),
}


@dataclass(frozen=True)
class ActorCapabilities:
    actor_id: str
    role: str
    scopes: frozenset[str]
    email: str | None = None


def authorize(actor: ActorCapabilities, action: Action, admin_roles: frozenset[str] | None = None) -> bool:
    if admin_roles is None:
        admin_roles = settings.admin_roles
    if actor.role in admin_roles:
        return True
    return bool(actor.scopes & ACTION_SCOPES[action])


def require(actor: ActorCapabilities, action: Action) -> None:
    """Raise Forbidden unless ``actor`` may perform ``action``."""
    if not authorize(actor, action):
        logger.warning("Actor %s (role=%s) denied '%s'", actor.actor_id, actor.role, action.value)
        raise Forbidden(f"Actor {actor.actor_id} is not allowed to perform '{action.value}'")


def load_capabilities(db: Session, actor_id: str) -> ActorCapabilities:
    """Resolve an actor id into its role and permission scopes."""
    actor = db.query(Actor).filter(Actor.actor_id == actor_id).first()
    if not actor:
        # Unknown identities are an authorization failure, not a lookup miss
        raise Forbidden(f"Unknown actor {actor_id}")
    return ActorCapabilities(
        actor_id=actor.actor_id,
        role=actor.role,
        scopes=frozenset(actor.permissions or []),
        email=actor.email,
    )


def get_actor(db: Session, actor_id: str) -> Actor:
    actor = db.query(Actor).filter(Actor.actor_id == actor_id).first()
    if not actor:
        raise NotFound(f"Actor {actor_id} not found")
    return actor
