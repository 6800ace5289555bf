"""LedgerEntry model: one immutable, signed point change."""

import uuid as uuid_lib

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from rewardman.gates import SOURCE_ID_MAX_LENGTH, SOURCE_TYPE_MAX_LENGTH


class EntryKind(models.TextChoices):
    """Ledger entry kinds."""

    EARN = "earn", _("Earn")
    REDEEM = "redeem", _("Redeem")
    EXPIRE = "expire", _("Expire")
    ADJUSTMENT = "adjustment", _("Adjustment")


class LedgerEntry(models.Model):
    """
    Immutable record of a point change.

    Sign convention: earn > 0, redeem < 0, expire <= 0, adjustment either.
    An expire entry reuses the source reference of the earn it offsets,
    so (account, kind, source_type, source_id) is unique for every kind
    except adjustment.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    account = models.ForeignKey(
        "rewardman.LoyaltyAccount",
        on_delete=models.CASCADE,
        related_name="entries",
        verbose_name=_("account"),
    )

    kind = models.CharField(_("kind"), max_length=20, choices=EntryKind.choices)
    delta = models.IntegerField(
        _("delta"),
        help_text=_("Positive for earn, negative for redeem/expire"),
    )
    balance_after = models.IntegerField(
        _("balance after"),
        help_text=_("Account balance once this entry applied"),
    )

    # Source reference
    source_type = models.CharField(
        _("source type"),
        max_length=SOURCE_TYPE_MAX_LENGTH,
        help_text=_("Producer of the event (booking, referral, review, share, redemption)"),
    )
    source_id = models.CharField(
        _("source ID"),
        max_length=SOURCE_ID_MAX_LENGTH,
        help_text=_("Identifier within the source (e.g. booking ID)"),
    )
    idempotency_key = models.CharField(_("idempotency key"), max_length=255, blank=True)

    description = models.CharField(_("description"), max_length=200, blank=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    expires_at = models.DateTimeField(
        _("expires at"),
        null=True,
        blank=True,
        help_text=_("Set on earn entries only"),
    )
    created_at = models.DateTimeField(_("created at"), default=timezone.now, editable=False)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("ledger entry")
        verbose_name_plural = _("ledger entries")
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "kind", "source_type", "source_id"],
                condition=~Q(kind="adjustment"),
                name="rewardman_unique_entry_source",
            ),
            models.UniqueConstraint(
                fields=["account", "idempotency_key"],
                condition=Q(kind="redeem") & ~Q(idempotency_key=""),
                name="rewardman_unique_redeem_key",
            ),
        ]
        indexes = [
            models.Index(
                fields=["account", "source_type", "source_id"],
                name="rewardman_entry_source_idx",
            ),
            models.Index(fields=["kind", "expires_at"], name="rewardman_entry_expiry_idx"),
        ]

    def __str__(self):
        sign = "+" if self.delta > 0 else ""
        return f"{sign}{self.delta}pts [{self.kind}] {self.source_type}:{self.source_id}"

    @property
    def source_ref(self) -> str:
        return f"{self.source_type}:{self.source_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Ledger entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger entries are append-only")
