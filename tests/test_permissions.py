"""
Unit tests for RBAC – the role permission table and its enforcing check.
"""

import pytest

from medbook.models import Action, Permission, Resource, Role
from medbook.permissions import (
    DEFAULT_POLICY,
    AuthorizationError,
    PolicyTable,
    build_default_policy,
    has_permission,
    require_permission,
)


# ── Tests: stock policy ──────────────────────────────────────────────

@pytest.mark.parametrize("action", ["create", "read", "update", "delete"])
def test_admin_manages_users_and_doctors(action):
    assert has_permission("admin", "users", action) is True
    assert has_permission("admin", "doctors", action) is True


def test_admin_cannot_create_appointments():
    assert has_permission("admin", "appointments", "create") is False
    assert has_permission("admin", "appointments", "read") is True
    assert has_permission("admin", "appointments", "update") is True
    assert has_permission("admin", "appointments", "delete") is True
    assert has_permission("admin", "patients", "read") is True
    assert has_permission("admin", "patients", "delete") is False


def test_doctor_permissions():
    assert has_permission("doctor", "appointments", "read") is True
    assert has_permission("doctor", "appointments", "update") is True
    assert has_permission("doctor", "appointments", "delete") is False
    assert has_permission("doctor", "appointments", "create") is False
    assert has_permission("doctor", "patients", "read") is True
    assert has_permission("doctor", "documents", "create") is True
    assert has_permission("doctor", "documents", "read") is True


def test_patient_permissions():
    assert has_permission("patient", "appointments", "create") is True
    assert has_permission("patient", "appointments", "read") is True
    assert has_permission("patient", "appointments", "update") is True
    assert has_permission("patient", "appointments", "delete") is False
    assert has_permission("patient", "doctors", "read") is True
    assert has_permission("patient", "doctors", "update") is False
    assert has_permission("patient", "documents", "read") is True
    assert has_permission("patient", "users", "create") is False
    assert has_permission("patient", "users", "delete") is False


def test_table_sizes_match_role_definitions():
    assert len(DEFAULT_POLICY.permissions_for(Role.ADMIN)) == 12
    assert len(DEFAULT_POLICY.permissions_for(Role.DOCTOR)) == 5
    assert len(DEFAULT_POLICY.permissions_for(Role.PATIENT)) == 5


def test_unlisted_pairs_are_denied_for_every_role():
    for role in Role:
        granted = DEFAULT_POLICY.permissions_for(role)
        for resource in Resource:
            for action in Action:
                expected = Permission(resource, action) in granted
                assert has_permission(role, resource, action) is expected


# ── Tests: input handling ────────────────────────────────────────────

def test_enum_and_string_arguments_are_equivalent():
    assert has_permission(Role.ADMIN, Resource.USERS, Action.DELETE) is True
    assert has_permission("admin", Resource.USERS, "delete") is True


@pytest.mark.parametrize("role", ["nurse", "", None, "ADMIN", 42])
def test_unknown_role_has_no_permissions(role):
    assert has_permission(role, "appointments", "read") is False
    assert DEFAULT_POLICY.permissions_for(role) == frozenset()


def test_unknown_resource_or_action_is_denied():
    assert has_permission("admin", "billing", "read") is False
    assert has_permission("admin", "users", "archive") is False


# ── Tests: require_permission ────────────────────────────────────────

def test_require_permission_allows_granted():
    require_permission("admin", "users", "create")


def test_require_permission_denies_with_fixed_message():
    with pytest.raises(AuthorizationError, match="Acesso negado: permissão insuficiente") as e:
        require_permission("patient", "users", "delete")
    assert "users" not in str(e.value)
    assert "delete" not in str(e.value)


def test_require_permission_unknown_role_fails_closed():
    with pytest.raises(AuthorizationError):
        require_permission("guest", "doctors", "read")


# ── Tests: injected policy ───────────────────────────────────────────

def test_custom_policy_is_used_when_injected():
    policy = PolicyTable({Role.PATIENT: [Permission(Resource.USERS, Action.DELETE)]})
    assert has_permission("patient", "users", "delete", policy=policy) is True
    assert has_permission("patient", "appointments", "create", policy=policy) is False
    # roles missing from the mapping still get an (empty) entry
    assert policy.permissions_for(Role.ADMIN) == frozenset()
    with pytest.raises(AuthorizationError):
        require_permission("admin", "users", "read", policy=policy)


def test_policy_table_is_read_only():
    policy = build_default_policy()
    with pytest.raises(TypeError):
        policy._table[Role.PATIENT] = frozenset()
    assert isinstance(policy.permissions_for(Role.PATIENT), frozenset)


def test_build_default_policy_matches_module_default():
    fresh = build_default_policy()
    for role in Role:
        assert fresh.permissions_for(role) == DEFAULT_POLICY.permissions_for(role)
