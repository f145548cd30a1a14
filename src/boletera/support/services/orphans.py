"""Orphan ticket reconciliation.

An *orphan* is an issued ticket with no owning account, other than courtesy
tickets deliberately issued standalone. Orphans appear after guest
purchases, after an account creation that failed at checkout, and for
courtesy tickets waiting for their recipient to sign up. Linking an orphan
to an account is irreversible.
"""

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from boletera import notifications
from boletera.accounts.services.provisioning import normalize_email
from boletera.settings import get_config
from boletera.tickets.models import OrphanRecovery, Ticket

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def orphan_tickets() -> QuerySet[Ticket]:
    """Tickets without an account, excluding standalone courtesies."""
    return Ticket.objects.filter(user__isnull=True).exclude(created_via=Ticket.CreatedVia.COURTESY_STANDALONE)


class OrphanService:
    """Stateless service for finding and linking orphan tickets."""

    @staticmethod
    def list_orphans(limit: int | None = None) -> list[Ticket]:
        """Return orphan tickets, newest first.

        Args:
            limit: Maximum number of tickets; defaults to ``orphan_list_limit``.
        """
        limit = limit or get_config().orphan_list_limit
        queryset = orphan_tickets().select_related("event", "order", "recovery").order_by("-created_at", "-pk")
        return list(queryset[:limit])

    @staticmethod
    def stats() -> dict[str, int]:
        """Count orphans and recovery records by status.

        ``total`` is the number of tickets still orphaned; the other counts
        cover every recovery record, including resolved ones.
        """
        counts = OrphanRecovery.objects.aggregate(
            pending=Count("pk", filter=Q(recovery_status=OrphanRecovery.RecoveryStatus.PENDING)),
            recovered=Count("pk", filter=Q(recovery_status=OrphanRecovery.RecoveryStatus.RECOVERED)),
            expired=Count("pk", filter=Q(recovery_status=OrphanRecovery.RecoveryStatus.EXPIRED)),
        )
        return {"total": orphan_tickets().count(), **counts}

    @staticmethod
    def search_users(term: str) -> list[Any]:
        """Find accounts whose email or name contains ``term``.

        Terms shorter than ``user_search_min_length`` return no results.
        There is no server-side debouncing; clients debounce their input.
        """
        config = get_config()
        normalized = term.strip()
        if len(normalized) < config.user_search_min_length:
            return []
        return list(
            get_user_model()
            .objects.filter(is_active=True)
            .filter(
                Q(email__icontains=normalized)
                | Q(first_name__icontains=normalized)
                | Q(last_name__icontains=normalized),
            )
            .order_by("email", "pk")[: config.user_search_limit],
        )

    @staticmethod
    @transaction.atomic
    def _link(ticket: Ticket, user: Any, *, linked_by: Any, method: str) -> Ticket:
        ticket = Ticket.objects.select_for_update().select_related("event", "order").get(pk=ticket.pk)
        if ticket.user_id is not None:
            raise ValidationError("Ticket is already linked to a user")

        now = timezone.now()
        ticket.user = user
        ticket.linked_at = now
        ticket.linked_via = method
        ticket.linked_by = linked_by
        ticket.save(update_fields=["user", "linked_at", "linked_via", "linked_by", "updated_at"])

        OrphanRecovery.objects.filter(ticket=ticket).update(
            recovery_status=OrphanRecovery.RecoveryStatus.RECOVERED,
            recovered_at=now,
            linked_to_user=user,
            recovery_method=method,
        )
        if ticket.order.user_id is None:
            ticket.order.user = user
            ticket.order.save(update_fields=["user", "updated_at"])

        logger.info(
            "Linked ticket %s to user %s via %s (by %s)",
            ticket.qr_id,
            user.pk,
            method,
            getattr(linked_by, "pk", None),
        )
        return ticket

    @staticmethod
    def link_ticket(ticket: Ticket, user: Any, *, linked_by: Any) -> Ticket:
        """Attach an orphan ticket to ``user`` on behalf of a staff member.

        Marks any recovery record as recovered and notifies the user. A
        failed notification does not undo the link.

        Raises:
            ValidationError: If the ticket already belongs to a user.
        """
        linked = OrphanService._link(ticket, user, linked_by=linked_by, method=Ticket.LinkedVia.MANUAL_ADMIN)
        notifications.send_ticket_linked(linked, user)
        return linked

    @staticmethod
    def auto_link_for_user(user: Any) -> "Sequence[Ticket]":
        """Link pending orphans whose recovery email matches ``user``'s email.

        Returns:
            The tickets that were linked.
        """
        email = normalize_email(getattr(user, "email", ""))
        if not email:
            return []
        recoveries = OrphanRecovery.objects.filter(
            recovery_status=OrphanRecovery.RecoveryStatus.PENDING,
            target_email__iexact=email,
            ticket__user__isnull=True,
        ).select_related("ticket")
        linked = [
            OrphanService._link(recovery.ticket, user, linked_by=None, method=Ticket.LinkedVia.AUTO_EMAIL_MATCH)
            for recovery in recoveries
        ]
        if linked:
            logger.info("Auto-linked %d orphan ticket(s) to new user %s", len(linked), user.pk)
        return linked

    @staticmethod
    def expire_stale(days: int | None = None) -> int:
        """Mark pending recoveries older than ``days`` as expired.

        Args:
            days: Age cutoff; defaults to ``orphan_recovery_days``.

        Returns:
            Number of recovery records expired.
        """
        cutoff = timezone.now() - timedelta(days=days or get_config().orphan_recovery_days)
        expired = OrphanRecovery.objects.filter(
            recovery_status=OrphanRecovery.RecoveryStatus.PENDING,
            created_at__lt=cutoff,
        ).update(recovery_status=OrphanRecovery.RecoveryStatus.EXPIRED)
        if expired:
            logger.info("Expired %d orphan recovery record(s) older than %s", expired, cutoff)
        return expired
