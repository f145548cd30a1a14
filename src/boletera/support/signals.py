"""Signal receivers for the support app."""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from boletera.support.services.orphans import OrphanService

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid="boletera.support.link_orphans_on_signup")
def link_orphans_on_signup(sender: type, instance: object, created: bool, **kwargs: object) -> None:  # noqa: ARG001
    """Attach pending orphan tickets to a newly created account with a matching email."""
    if not created or kwargs.get("raw"):
        return
    OrphanService.auto_link_for_user(instance)
