# returns/admin.py

from __future__ import annotations

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from orders.money import format_money

from .models import RefundAttempt, ReturnItem, ReturnMessage, ReturnRequest


class ReturnItemInline(admin.TabularInline):
    model = ReturnItem
    extra = 0
    can_delete = False
    fields = ("position", "order_item_index", "quantity", "reason")
    readonly_fields = fields


class ReturnMessageInline(admin.TabularInline):
    model = ReturnMessage
    extra = 0
    can_delete = False
    fields = ("created_at", "sender_type", "sender", "message_type", "body", "is_read", "read_at")
    readonly_fields = fields
    ordering = ("created_at",)


@admin.register(ReturnRequest)
class ReturnRequestAdmin(admin.ModelAdmin):
    list_display = (
        "rma_number",
        "status",
        "reason",
        "order_link",
        "user",
        "approved_display",
        "refunded",
        "submitted_at",
    )
    list_filter = ("status", "reason", "type", "submitted_at")
    search_fields = (
        "rma_number",
        "order__order_number",
        "order__email",
        "user__username",
        "user__email",
        "stripe_refund_id",
    )
    ordering = ("-submitted_at",)
    inlines = (ReturnItemInline, ReturnMessageInline)

    # Status and money only move through the service layer (refunds happen there).
    readonly_fields = (
        "id",
        "rma_number",
        "order",
        "user",
        "type",
        "reason",
        "description",
        "evidence",
        "status",
        "requested_amount",
        "approved_amount",
        "stripe_refund_id",
        "refunded_at",
        "submitted_at",
        "reviewed_at",
        "completed_at",
        "updated_at",
    )

    fieldsets = (
        ("Identity", {"fields": ("id", "rma_number", "type", "status", "submitted_at", "updated_at")}),
        ("Parties", {"fields": ("order", "user")}),
        ("Customer request", {"fields": ("reason", "description", "evidence", "requested_amount")}),
        ("Review", {"fields": ("reviewed_at", "completed_at", "tracking_number", "admin_notes")}),
        ("Stripe", {"fields": ("approved_amount", "stripe_refund_id", "refunded_at")}),
    )

    def order_link(self, obj: ReturnRequest) -> str:
        url = reverse("admin:orders_order_change", args=[obj.order_id])
        return format_html('<a href="{}">{}</a>', url, obj.order.order_number)

    order_link.short_description = "Order"

    def approved_display(self, obj: ReturnRequest) -> str:
        if obj.approved_amount is None:
            return "-"
        return format_money(obj.approved_amount)

    approved_display.short_description = "Approved"

    @admin.display(boolean=True, description="Refunded")
    def refunded(self, obj: ReturnRequest) -> bool:
        return obj.is_refunded

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(RefundAttempt)
class RefundAttemptAdmin(admin.ModelAdmin):
    list_display = ("created_at", "success", "retryable", "return_request", "amount_cents", "full_refund", "actor", "stripe_refund_id")
    list_filter = ("success", "retryable", "full_refund", "created_at")
    search_fields = ("return_request__rma_number", "stripe_refund_id", "actor__username", "error_message", "request_id")
    ordering = ("-created_at",)
    readonly_fields = (
        "id",
        "return_request",
        "actor",
        "request_id",
        "amount_cents",
        "full_refund",
        "success",
        "retryable",
        "stripe_refund_id",
        "error_message",
        "created_at",
    )
