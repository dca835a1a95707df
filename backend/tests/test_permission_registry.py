"""
Tests for the permission registry and evaluator.

The grant table is the whole authorization model: no wildcards, no action
implies another, and system roles are fixed.
"""
import pytest

from admin_core.auth.evaluator import describe_grants, is_allowed, is_allowed_all, is_allowed_any
from admin_core.auth.permissions import (
    DEFAULT_ROLE_ID,
    FINANCE_ADMIN_ROLE_ID,
    MODERATOR_ROLE_ID,
    SUPER_ADMIN_ROLE_ID,
    SUPPORT_ROLE_ID,
    SYSTEM_ROLES,
    Action,
    Resource,
    Role,
    RoleType,
    freeze_permissions,
    get_default_role,
    is_role_more_powerful,
    is_system_role_id,
    permissions_to_dict,
    roles_with_access,
)


class TestSystemRoles:
    """Seeded roles match the console's configuration."""

    def test_seeded_role_ids(self):
        assert set(SYSTEM_ROLES) == {
            SUPER_ADMIN_ROLE_ID,
            MODERATOR_ROLE_ID,
            FINANCE_ADMIN_ROLE_ID,
            SUPPORT_ROLE_ID,
        }
        assert all(role.is_system for role in SYSTEM_ROLES.values())

    def test_finance_admin_has_finance_type(self):
        assert SYSTEM_ROLES[FINANCE_ADMIN_ROLE_ID].type == RoleType.FINANCE

    def test_super_admin_grants(self):
        role = SYSTEM_ROLES[SUPER_ADMIN_ROLE_ID]
        for resource in (Resource.USERS, Resource.EVENTS, Resource.FINANCE):
            assert role.actions_for(resource) == frozenset(Action)
        assert role.actions_for(Resource.REPORTS) == {Action.VIEW, Action.CREATE, Action.EXPORT}
        assert role.actions_for(Resource.ROLES) == {
            Action.VIEW,
            Action.CREATE,
            Action.EDIT,
            Action.DELETE,
        }
        assert role.actions_for(Resource.SETTINGS) == {Action.VIEW, Action.EDIT}
        assert role.actions_for(Resource.AUDIT_LOGS) == {Action.VIEW, Action.EXPORT}

    def test_moderator_grants(self):
        role = SYSTEM_ROLES[MODERATOR_ROLE_ID]
        assert role.actions_for(Resource.USERS) == {Action.VIEW, Action.EDIT, Action.APPROVE}
        assert role.actions_for(Resource.EVENTS) == {
            Action.VIEW,
            Action.EDIT,
            Action.DELETE,
            Action.APPROVE,
        }
        assert role.actions_for(Resource.FINANCE) == {Action.VIEW}

    def test_finance_admin_grants(self):
        role = SYSTEM_ROLES[FINANCE_ADMIN_ROLE_ID]
        assert role.actions_for(Resource.FINANCE) == {
            Action.VIEW,
            Action.CREATE,
            Action.EDIT,
            Action.APPROVE,
            Action.EXPORT,
        }
        assert role.actions_for(Resource.REPORTS) == {Action.VIEW, Action.EXPORT}
        assert role.actions_for(Resource.EVENTS) == {Action.VIEW}

    def test_support_is_read_only(self):
        role = SYSTEM_ROLES[SUPPORT_ROLE_ID]
        for resource in Resource:
            assert role.actions_for(resource) == {Action.VIEW}

    def test_default_role_is_support(self):
        assert DEFAULT_ROLE_ID == SUPPORT_ROLE_ID
        assert get_default_role() is SYSTEM_ROLES[SUPPORT_ROLE_ID]

    def test_system_role_grants_are_read_only(self):
        role = SYSTEM_ROLES[SUPER_ADMIN_ROLE_ID]
        with pytest.raises(TypeError):
            role.permissions[Resource.USERS] = frozenset()  # type: ignore[index]

    def test_is_system_role_id(self):
        assert is_system_role_id(MODERATOR_ROLE_ID)
        assert not is_system_role_id("custom_abc")


class TestFreezePermissions:
    def test_accepts_string_values(self):
        grants = freeze_permissions({"events": ["view", "approve"]})
        assert grants[Resource.EVENTS] == {Action.VIEW, Action.APPROVE}

    def test_drops_empty_action_sets(self):
        grants = freeze_permissions({"events": [], "users": ["view"]})
        assert Resource.EVENTS not in grants

    def test_rejects_unknown_resource(self):
        with pytest.raises(ValueError):
            freeze_permissions({"galaxies": ["view"]})

    def test_rejects_wildcard_action(self):
        with pytest.raises(ValueError):
            freeze_permissions({"users": ["*"]})

    def test_permissions_to_dict_is_sorted(self):
        grants = freeze_permissions({"users": ["edit", "view"], "events": ["approve"]})
        assert permissions_to_dict(grants) == {
            "events": ["approve"],
            "users": ["edit", "view"],
        }


class TestEvaluator:
    @pytest.fixture
    def reviewer(self):
        return Role(
            id="custom_reviewer",
            name="Reviewer",
            type=RoleType.CUSTOM,
            permissions=freeze_permissions({"events": ["view", "approve"]}),
        )

    def test_allowed_only_for_granted_pairs(self, reviewer):
        assert is_allowed(reviewer, Resource.EVENTS, Action.APPROVE)
        assert is_allowed(reviewer, "events", "view")
        assert not is_allowed(reviewer, Resource.EVENTS, Action.DELETE)

    def test_no_implication_between_actions(self, reviewer):
        # approve does not imply edit
        assert not is_allowed(reviewer, Resource.EVENTS, Action.EDIT)

    def test_missing_resource_is_empty_grant(self, reviewer):
        for action in Action:
            assert not is_allowed(reviewer, Resource.FINANCE, action)

    def test_unknown_values_are_denied(self, reviewer):
        assert not is_allowed(reviewer, "events", "*")
        assert not is_allowed(reviewer, "planets", "view")

    def test_none_role_is_denied(self):
        assert not is_allowed(None, Resource.USERS, Action.VIEW)

    def test_any_and_all(self, reviewer):
        grants = [(Resource.EVENTS, Action.DELETE), (Resource.EVENTS, Action.APPROVE)]
        assert is_allowed_any(reviewer, grants)
        assert not is_allowed_all(reviewer, grants)
        assert not is_allowed_all(reviewer, [])

    def test_describe_grants(self):
        grants = [(Resource.FINANCE, Action.APPROVE), (Resource.FINANCE, Action.EDIT)]
        assert describe_grants(grants) == "finance:approve or finance:edit"


class TestRoleHelpers:
    def test_roles_with_access(self):
        roles = roles_with_access("finance", "approve", SYSTEM_ROLES.values())
        assert {role.id for role in roles} == {SUPER_ADMIN_ROLE_ID, FINANCE_ADMIN_ROLE_ID}

    def test_power_order(self):
        custom = Role(id="custom_x", name="X", type=RoleType.CUSTOM)
        assert is_role_more_powerful(SYSTEM_ROLES[SUPER_ADMIN_ROLE_ID], SYSTEM_ROLES[MODERATOR_ROLE_ID])
        assert is_role_more_powerful(SYSTEM_ROLES[SUPPORT_ROLE_ID], custom)
        assert not is_role_more_powerful(custom, SYSTEM_ROLES[SUPPORT_ROLE_ID])
