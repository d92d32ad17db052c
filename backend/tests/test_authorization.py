"""Tests for the AuthorizationGate predicate."""
import pytest

from app.services.authorization import Action, ActorCapabilities, authorize, load_capabilities
from app.services.errors import Forbidden
from tests.conftest import seed_actor

ADMIN_ROLES = frozenset({"admin", "superadmin"})


def _actor(role="subadmin", scopes=()):
    return ActorCapabilities(actor_id="a-1", role=role, scopes=frozenset(scopes))


@pytest.mark.parametrize("role", ["admin", "superadmin"])
@pytest.mark.parametrize("action", list(Action))
def test_admin_roles_may_do_everything(role, action):
    assert authorize(_actor(role=role), action, ADMIN_ROLES)


@pytest.mark.parametrize(
    "scopes, allowed",
    [
        ({"schedule"}, {Action.create}),
        ({"status"}, {Action.transition}),
        ({"notes"}, {Action.add_note}),
        ({"manage"}, {Action.transition, Action.add_note}),
        ({"schedule", "manage"}, set(Action)),
        (set(), set()),
        ({"send_notifications"}, set()),
    ],
)
def test_scopes_map_to_actions(scopes, allowed):
    actor = _actor(scopes=scopes)
    for action in Action:
        assert authorize(actor, action, ADMIN_ROLES) is (action in allowed)


def test_vendor_role_is_not_administrative():
    assert not authorize(_actor(role="vendor"), Action.create, ADMIN_ROLES)


def test_load_capabilities_reads_identity_store(db):
    actor = seed_actor(db, "Ops", permissions=["notes"], email="ops@example.com")
    caps = load_capabilities(db, actor.actor_id)
    assert caps.scopes == frozenset({"notes"})
    assert caps.role == "subadmin"
    assert caps.email == "ops@example.com"


def test_unknown_actor_is_forbidden(db):
    with pytest.raises(Forbidden):
        load_capabilities(db, "nobody")
