"""LoyaltyAccount model."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyAccount(models.Model):
    """
    Member of the loyalty program.

    Created lazily on the first earn or redemption. Holds no balance of
    its own: balance and tier are projected from the ledger on read.

    version counts appends to this account's ledger and is the
    compare-and-set token for optimistic concurrency.
    """

    code = models.CharField(
        _("code"),
        max_length=100,
        unique=True,
        help_text=_("External member identifier (e.g. CUST-001)"),
    )
    version = models.PositiveBigIntegerField(
        _("version"),
        default=0,
        help_text=_("Number of ledger entries appended so far"),
    )
    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("loyalty account")
        verbose_name_plural = _("loyalty accounts")
        ordering = ["code"]

    def __str__(self):
        return f"{self.code} (v{self.version})"
