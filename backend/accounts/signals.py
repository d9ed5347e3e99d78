import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import User

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def grant_initial_credits(sender, instance, created, raw=False, **kwargs):
    """
    Give newly registered authors their starting credit balance.
    """
    if not created or raw:
        return

    from credits.services.ledger import grant_initial_credits as _grant

    entry = _grant(author=instance)
    if entry is not None:
        logger.info("Granted %s initial credits to author %s", entry.amount, instance.pk)
