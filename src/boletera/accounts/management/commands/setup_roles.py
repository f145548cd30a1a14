"""Management command to create the permission groups backing staff roles."""

from typing import Any

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand

from boletera.accounts.roles import ROLE_GROUPS, Role

# Mapping of role -> list of (app_label, codename) permissions for the admin site.
_ROLE_PERMISSIONS: dict[Role, list[tuple[str, str]]] = {
    Role.ADMIN: [
        ("boletera_events", "add_event"),
        ("boletera_events", "change_event"),
        ("boletera_events", "view_event"),
        ("boletera_events", "add_tickettype"),
        ("boletera_events", "change_tickettype"),
        ("boletera_events", "view_tickettype"),
        ("boletera_checkout", "view_order"),
        ("boletera_checkout", "change_order"),
        ("boletera_checkout", "view_orderlineitem"),
        ("boletera_checkout", "view_preregistration"),
        ("boletera_checkout", "change_preregistration"),
        ("boletera_tickets", "view_ticket"),
        ("boletera_tickets", "change_ticket"),
        ("boletera_tickets", "view_orphanrecovery"),
        ("boletera_tickets", "change_orphanrecovery"),
        ("boletera_tickets", "view_checkin"),
    ],
    Role.GESTOR: [
        ("boletera_events", "view_event"),
        ("boletera_events", "view_tickettype"),
        ("boletera_checkout", "view_order"),
        ("boletera_checkout", "view_orderlineitem"),
        ("boletera_checkout", "view_preregistration"),
        ("boletera_checkout", "change_preregistration"),
        ("boletera_tickets", "view_ticket"),
        ("boletera_tickets", "view_orphanrecovery"),
        ("boletera_tickets", "view_checkin"),
    ],
    Role.COMPROBADOR: [
        ("boletera_events", "view_event"),
        ("boletera_tickets", "view_ticket"),
        ("boletera_tickets", "view_checkin"),
    ],
    Role.USUARIO: [],
}


class Command(BaseCommand):
    """Create one group per role with its admin permissions.

    * **admin** -- events, ticket types, orders, tickets, orphan recovery
    * **gestor** -- support desk: orders, preregistrations, orphan lookups
    * **comprobador** -- door staff: tickets and check-ins
    * **usuario** -- regular buyers, no admin access

    Safe to run multiple times; existing groups are updated with the defined
    permission set.
    """

    help = "Create the permission groups backing boletera staff roles."

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the setup_roles command."""
        for role, perm_specs in _ROLE_PERMISSIONS.items():
            group_name = ROLE_GROUPS[role]
            group, created = Group.objects.get_or_create(name=group_name)
            verb = "Created" if created else "Updated"

            permissions = Permission.objects.filter(
                content_type__app_label__in={app for app, _ in perm_specs},
            ).select_related("content_type")
            matched = [p for p in permissions if (p.content_type.app_label, p.codename) in perm_specs]
            group.permissions.set(matched)

            self.stdout.write(self.style.SUCCESS(f"  {verb} group '{group_name}' with {len(matched)} permissions"))

        self.stdout.write(self.style.SUCCESS("\nDone."))
