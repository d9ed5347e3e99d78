import logging

from django.apps import AppConfig
from django.db.models.signals import post_migrate

logger = logging.getLogger(__name__)


def init_catalog_after_migrate(sender, **kwargs):
    """Called automatically after migrations to seed packages and edit pricing."""
    from django.db import OperationalError, ProgrammingError

    from .services.catalog import ensure_default_catalog

    logger.info("[Credits] Running ensure_default_catalog() after migrate…")
    try:
        ensure_default_catalog(force=True)
    except (OperationalError, ProgrammingError):
        logger.debug("Database not ready for credit catalog initialisation.")


class CreditsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'credits'
    verbose_name = 'Credits'

    def ready(self):
        # Packages and pricing are ensured after every migrate run
        post_migrate.connect(init_catalog_after_migrate, sender=self)
