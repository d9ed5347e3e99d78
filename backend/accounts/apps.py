from django.apps import AppConfig


class AccountConfig(AppConfig):
    """
    Account app configuration
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'accounts'
    verbose_name = 'Authors'

    def ready(self):
        """
        Register signal handlers
        """
        import accounts.signals  # noqa: F401
