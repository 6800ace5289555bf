"""Rewardman admin. The ledger is read-only here: corrections go through adjustments."""

from django.contrib import admin
from django.utils.html import format_html

from rewardman.models import LedgerEntry, LoyaltyAccount
from rewardman.services import projection
from rewardman.services.tiers import get_tier_table

TIER_COLORS = {
    "bronze": "#cd7f32",
    "silver": "#c0c0c0",
    "gold": "#ffd700",
    "platinum": "#e5e4e2",
}


class LedgerEntryInline(admin.TabularInline):
    model = LedgerEntry
    extra = 0
    fields = ["created_at", "kind", "delta", "balance_after", "source_type", "source_id", "description"]
    readonly_fields = fields
    ordering = ["-id"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = ["code", "balance", "tier_badge", "version", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["code"]
    readonly_fields = ["version", "created_at"]
    inlines = [LedgerEntryInline]

    @admin.display(description="Balance")
    def balance(self, obj):
        return projection.project(obj).balance

    @admin.display(description="Tier")
    def tier_badge(self, obj):
        tier = get_tier_table().tier_for(projection.project(obj).balance)
        color = TIER_COLORS.get(tier.code, "#6c757d")
        return format_html(
            '<span style="background:{}; color:#000; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            color,
            tier.name,
        )


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "account_code",
        "kind",
        "delta_display",
        "balance_after",
        "source_type",
        "source_id",
    ]
    list_filter = ["kind", "source_type"]
    search_fields = ["account__code", "source_id", "idempotency_key", "description"]
    date_hierarchy = "created_at"
    list_select_related = ["account"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Account")
    def account_code(self, obj):
        return obj.account.code

    @admin.display(description="Points")
    def delta_display(self, obj):
        if obj.delta > 0:
            return format_html('<span style="color:green">+{}</span>', obj.delta)
        return format_html('<span style="color:red">{}</span>', obj.delta)
