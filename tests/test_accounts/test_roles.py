"""Tests for staff roles and the setup_roles management command."""

from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser, Group
from django.core.management import call_command

from boletera.accounts.roles import ROLE_GROUPS, SCANNER_ROLES, SUPPORT_ROLES, Role, assign_role, has_any_role, user_roles

User = get_user_model()


@pytest.fixture
def user(db):
    return User.objects.create_user(username="raul", email="raul@example.com", password="x")


@pytest.mark.django_db
class TestUserRoles:
    def test_anonymous_has_none(self):
        assert user_roles(AnonymousUser()) == set()
        assert user_roles(None) == set()

    def test_every_user_is_usuario(self, user):
        assert user_roles(user) == {Role.USUARIO}

    def test_superuser_is_admin(self):
        root = User.objects.create_superuser(username="root", email="root@example.com", password="x")
        assert Role.ADMIN in user_roles(root)
        assert has_any_role(root, SUPPORT_ROLES)

    def test_assign_role(self, user):
        assign_role(user, Role.COMPROBADOR)

        assert has_any_role(user, SCANNER_ROLES)
        assert not has_any_role(user, SUPPORT_ROLES)

    def test_unrelated_groups_ignored(self, user):
        user.groups.add(Group.objects.create(name="Newsletter"))
        assert user_roles(user) == {Role.USUARIO}


@pytest.mark.django_db
class TestSetupRolesCommand:
    def test_creates_groups_with_permissions(self):
        out = StringIO()
        call_command("setup_roles", stdout=out)

        assert set(Group.objects.values_list("name", flat=True)) == set(ROLE_GROUPS.values())
        admin = Group.objects.get(name=ROLE_GROUPS[Role.ADMIN])
        assert admin.permissions.filter(codename="change_orphanrecovery").exists()
        scanner = Group.objects.get(name=ROLE_GROUPS[Role.COMPROBADOR])
        assert set(scanner.permissions.values_list("codename", flat=True)) == {
            "view_event",
            "view_ticket",
            "view_checkin",
        }
        assert Group.objects.get(name=ROLE_GROUPS[Role.USUARIO]).permissions.count() == 0
        assert "Created group" in out.getvalue()

    def test_is_idempotent(self):
        call_command("setup_roles", stdout=StringIO())
        out = StringIO()
        call_command("setup_roles", stdout=out)

        assert Group.objects.count() == len(ROLE_GROUPS)
        assert "Updated group" in out.getvalue()
