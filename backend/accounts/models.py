from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Story author. Balances are never stored here; they are derived from the
    credit ledger.
    """
    email = models.EmailField(unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    display_name = models.CharField(max_length=150, blank=True, verbose_name="Display Name")
    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = ['email']

    class Meta:
        db_table = 'user'
        verbose_name = 'Author'
        verbose_name_plural = 'Authors'

    def __str__(self):
        return self.display_name or self.username
