# Generated migration for LoyaltyAccount and LedgerEntry

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="External member identifier (e.g. CUST-001)",
                        max_length=100,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                (
                    "version",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Number of ledger entries appended so far",
                        verbose_name="version",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, verbose_name="created at"),
                ),
            ],
            options={
                "verbose_name": "loyalty account",
                "verbose_name_plural": "loyalty accounts",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("earn", "Earn"),
                            ("redeem", "Redeem"),
                            ("expire", "Expire"),
                            ("adjustment", "Adjustment"),
                        ],
                        max_length=20,
                        verbose_name="kind",
                    ),
                ),
                (
                    "delta",
                    models.IntegerField(
                        help_text="Positive for earn, negative for redeem/expire",
                        verbose_name="delta",
                    ),
                ),
                (
                    "balance_after",
                    models.IntegerField(
                        help_text="Account balance once this entry applied",
                        verbose_name="balance after",
                    ),
                ),
                (
                    "source_type",
                    models.CharField(
                        help_text="Producer of the event (booking, referral, review, share, redemption)",
                        max_length=50,
                        verbose_name="source type",
                    ),
                ),
                (
                    "source_id",
                    models.CharField(
                        help_text="Identifier within the source (e.g. booking ID)",
                        max_length=100,
                        verbose_name="source ID",
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(blank=True, max_length=255, verbose_name="idempotency key"),
                ),
                (
                    "description",
                    models.CharField(blank=True, max_length=200, verbose_name="description"),
                ),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, verbose_name="metadata"),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Set on earn entries only",
                        null=True,
                        verbose_name="expires at",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="created at",
                    ),
                ),
                (
                    "created_by",
                    models.CharField(blank=True, max_length=100, verbose_name="created by"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="entries",
                        to="rewardman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "ledger entry",
                "verbose_name_plural": "ledger entries",
                "ordering": ["id"],
            },
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(
                fields=["account", "source_type", "source_id"],
                name="rewardman_entry_source_idx",
            ),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["kind", "expires_at"], name="rewardman_entry_expiry_idx"),
        ),
        migrations.AddConstraint(
            model_name="ledgerentry",
            constraint=models.UniqueConstraint(
                condition=models.Q(("kind", "adjustment"), _negated=True),
                fields=("account", "kind", "source_type", "source_id"),
                name="rewardman_unique_entry_source",
            ),
        ),
        migrations.AddConstraint(
            model_name="ledgerentry",
            constraint=models.UniqueConstraint(
                condition=models.Q(
                    ("kind", "redeem"),
                    models.Q(("idempotency_key", ""), _negated=True),
                ),
                fields=("account", "idempotency_key"),
                name="rewardman_unique_redeem_key",
            ),
        ),
    ]
