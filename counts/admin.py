"""Admin registrations for counts app."""

from django.contrib import admin

from .models import CountLine, CountSession


class CountLineInline(admin.TabularInline):
    model = CountLine
    extra = 0
    fields = ("stock_item", "location", "lot", "system_qty", "counted_qty", "diff_qty", "recount_required")
    readonly_fields = fields
    can_delete = False


@admin.register(CountSession)
class CountSessionAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "session_type",
        "status",
        "total_lines",
        "counted_lines",
        "discrepancy_lines",
        "total_value_gap",
        "created_at",
    )
    list_filter = ("status", "session_type")
    search_fields = ("code", "description")
    # Status changes go through the API so the ledger is reconciled
    readonly_fields = (
        "code",
        "status",
        "started_at",
        "completed_at",
        "approved_by",
        "total_lines",
        "counted_lines",
        "discrepancy_lines",
        "total_value_gap",
    )
    inlines = [CountLineInline]


@admin.register(CountLine)
class CountLineAdmin(admin.ModelAdmin):
    list_display = ("session", "stock_item", "location", "system_qty", "counted_qty", "diff_qty", "is_discrepancy")
    list_filter = ("is_discrepancy", "recount_required")
    search_fields = ("session__code", "stock_item__product__sku", "location__code")
