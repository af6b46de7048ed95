# Initial schema for merchants, customers, accounts, ledger, challenges,
# visits and gift cards

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import rewardman.models.merchant


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Merchant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.SlugField(unique=True, verbose_name="code")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                (
                    "timezone",
                    models.CharField(
                        default=rewardman.models.merchant._default_timezone,
                        help_text="IANA timezone used for daily caps and challenge windows",
                        max_length=64,
                        verbose_name="timezone",
                    ),
                ),
                (
                    "points_per_unit",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("1"),
                        help_text="Points earned per currency unit spent",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="points per unit",
                    ),
                ),
                (
                    "minimum_purchase",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="minimum purchase",
                    ),
                ),
                (
                    "daily_points_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Maximum points per customer per local day (empty = no limit)",
                        null=True,
                        verbose_name="daily points limit",
                    ),
                ),
                (
                    "gift_card_threshold",
                    models.PositiveIntegerField(
                        default=100,
                        help_text="Lifetime points per gift card (0 disables issuance)",
                        verbose_name="gift card threshold",
                    ),
                ),
                (
                    "gift_card_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("5"),
                        max_digits=10,
                        verbose_name="gift card value",
                    ),
                ),
                (
                    "gift_card_expiry_days",
                    models.PositiveIntegerField(
                        blank=True,
                        default=30,
                        help_text="Days until an issued card expires (empty = never)",
                        null=True,
                        verbose_name="gift card expiry (days)",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "merchant",
                "verbose_name_plural": "merchants",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Opaque customer id (ex: CUST-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("first_name", models.CharField(blank=True, max_length=100, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="last name")),
                (
                    "phone",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="E.164 (+593991234567)",
                        max_length=20,
                        verbose_name="phone",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["first_name", "last_name"],
            },
        ),
        migrations.CreateModel(
            name="RewardAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "points_balance",
                    models.IntegerField(default=0, help_text="Sum of all ledger entries", verbose_name="points balance"),
                ),
                (
                    "lifetime_points",
                    models.IntegerField(
                        default=0,
                        help_text="Total points ever earned (never decreases)",
                        verbose_name="lifetime points",
                    ),
                ),
                ("visits_count", models.PositiveIntegerField(default=0, verbose_name="visits")),
                ("last_visit_at", models.DateTimeField(blank=True, null=True, verbose_name="last visit")),
                ("version", models.PositiveIntegerField(default=0, verbose_name="version")),
                ("enrolled_at", models.DateTimeField(auto_now_add=True, verbose_name="enrolled at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="rewardman.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="rewardman.merchant",
                        verbose_name="merchant",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward account",
                "verbose_name_plural": "reward accounts",
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("earn", "Earn"), ("adjustment", "Adjustment"), ("redemption", "Redemption")],
                        max_length=20,
                        verbose_name="kind",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(help_text="Positive for earn, negative for redemption", verbose_name="points"),
                ),
                ("balance_after", models.IntegerField(verbose_name="balance after")),
                ("description", models.CharField(max_length=200, verbose_name="description")),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="External id (ex: pos:8812)",
                        max_length=100,
                        verbose_name="reference",
                    ),
                ),
                (
                    "purchase_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        verbose_name="purchase amount",
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(blank=True, default="", max_length=120, verbose_name="idempotency key"),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Award breakdown and challenge snapshots",
                        verbose_name="metadata",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="created at"),
                ),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="rewardman.rewardaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="rewardman.merchant",
                        verbose_name="merchant",
                    ),
                ),
            ],
            options={
                "verbose_name": "ledger entry",
                "verbose_name_plural": "ledger entries",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Challenge",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                (
                    "challenge_type",
                    models.CharField(
                        choices=[
                            ("amount_min", "Minimum amount"),
                            ("time_based", "Visit time"),
                            ("frequency", "Visit frequency"),
                            ("category", "Product category"),
                        ],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                ("config", models.JSONField(blank=True, default=dict, verbose_name="configuration")),
                ("points", models.PositiveIntegerField(verbose_name="bonus points")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("starts_at", models.DateTimeField(blank=True, null=True, verbose_name="starts at")),
                ("ends_at", models.DateTimeField(blank=True, null=True, verbose_name="ends at")),
                ("is_repeatable", models.BooleanField(default=True, verbose_name="repeatable")),
                (
                    "max_completions_per_day",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="max completions per day"),
                ),
                (
                    "max_completions_total",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="max completions total"),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="challenges",
                        to="rewardman.merchant",
                        verbose_name="merchant",
                    ),
                ),
            ],
            options={
                "verbose_name": "challenge",
                "verbose_name_plural": "challenges",
                "ordering": ["points", "id"],
            },
        ),
        migrations.CreateModel(
            name="ChallengeCompletion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points", models.PositiveIntegerField(verbose_name="points")),
                ("challenge_name", models.CharField(max_length=200, verbose_name="challenge name")),
                ("challenge_version", models.PositiveIntegerField(verbose_name="challenge version")),
                ("window_start", models.DateTimeField(blank=True, null=True, verbose_name="window start")),
                ("completed_at", models.DateTimeField(db_index=True, verbose_name="completed at")),
                (
                    "challenge",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="completions",
                        to="rewardman.challenge",
                        verbose_name="challenge",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="challenge_completions",
                        to="rewardman.rewardaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "ledger_entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="challenge_completions",
                        to="rewardman.ledgerentry",
                        verbose_name="ledger entry",
                    ),
                ),
            ],
            options={
                "verbose_name": "challenge completion",
                "verbose_name_plural": "challenge completions",
                "ordering": ["-completed_at"],
            },
        ),
        migrations.CreateModel(
            name="Visit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("branch", models.CharField(blank=True, max_length=100, verbose_name="branch")),
                (
                    "source",
                    models.CharField(
                        choices=[("pos", "Point of sale"), ("qr", "QR check-in"), ("whatsapp", "WhatsApp")],
                        default="pos",
                        max_length=20,
                        verbose_name="source",
                    ),
                ),
                (
                    "purchase_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        verbose_name="purchase amount",
                    ),
                ),
                (
                    "visited_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="visited at"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="visits",
                        to="rewardman.rewardaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "visit",
                "verbose_name_plural": "visits",
                "ordering": ["-visited_at"],
            },
        ),
        migrations.CreateModel(
            name="GiftCard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=40, unique=True, verbose_name="code")),
                ("value", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="value")),
                (
                    "status",
                    models.CharField(
                        choices=[("available", "Available"), ("redeemed", "Redeemed"), ("expired", "Expired")],
                        db_index=True,
                        default="available",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("sequence", models.PositiveIntegerField(verbose_name="threshold multiple")),
                ("points_threshold", models.PositiveIntegerField(verbose_name="points threshold")),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="issued at")),
                ("expires_at", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="expires at")),
                ("redeemed_at", models.DateTimeField(blank=True, null=True, verbose_name="redeemed at")),
                ("redeemed_by", models.CharField(blank=True, max_length=100, verbose_name="redeemed by")),
                ("redemption_notes", models.TextField(blank=True, verbose_name="redemption notes")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="gift_cards",
                        to="rewardman.rewardaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="gift_cards",
                        to="rewardman.merchant",
                        verbose_name="merchant",
                    ),
                ),
            ],
            options={
                "verbose_name": "gift card",
                "verbose_name_plural": "gift cards",
                "ordering": ["-issued_at", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="customer",
            constraint=models.UniqueConstraint(
                condition=models.Q(("phone", ""), _negated=True),
                fields=("phone",),
                name="rewardman_customer_unique_phone",
            ),
        ),
        migrations.AddConstraint(
            model_name="rewardaccount",
            constraint=models.UniqueConstraint(
                fields=("customer", "merchant"),
                name="rewardman_account_unique_customer_merchant",
            ),
        ),
        migrations.AddConstraint(
            model_name="rewardaccount",
            constraint=models.CheckConstraint(
                condition=models.Q(("points_balance__gte", 0)),
                name="rewardman_account_balance_non_negative",
            ),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["account", "-created_at"], name="rewardman_ledger_account_idx"),
        ),
        migrations.AddConstraint(
            model_name="ledgerentry",
            constraint=models.UniqueConstraint(
                condition=models.Q(("idempotency_key", ""), _negated=True),
                fields=("merchant", "idempotency_key"),
                name="rewardman_ledger_unique_idempotency_key",
            ),
        ),
        migrations.AddConstraint(
            model_name="challengecompletion",
            constraint=models.UniqueConstraint(
                fields=("challenge", "account", "window_start"),
                name="rewardman_completion_once_per_window",
            ),
        ),
        migrations.AddIndex(
            model_name="visit",
            index=models.Index(fields=["account", "-visited_at"], name="rewardman_visit_account_idx"),
        ),
        migrations.AddConstraint(
            model_name="giftcard",
            constraint=models.UniqueConstraint(
                fields=("account", "sequence"),
                name="rewardman_gift_card_once_per_multiple",
            ),
        ),
    ]
