# orders/admin.py

from __future__ import annotations

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from .models import Order, OrderEvent, OrderItem
from .money import format_money


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("position", "product_name", "variant_name", "quantity", "unit_price")
    ordering = ("position",)


class OrderEventInline(admin.TabularInline):
    model = OrderEvent
    extra = 0
    can_delete = False
    fields = ("created_at", "type", "message")
    readonly_fields = ("created_at", "type", "message")
    ordering = ("-created_at",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "status",
        "payment_status",
        "buyer",
        "total_display",
        "delivered_at",
        "created_at",
        "return_link",
    )
    list_filter = ("status", "payment_status", "created_at")
    search_fields = ("id", "order_number", "buyer__username", "email", "stripe_payment_intent_id")
    ordering = ("-created_at",)
    inlines = (OrderItemInline, OrderEventInline)
    readonly_fields = ("id", "order_number", "created_at", "updated_at")

    def total_display(self, obj: Order) -> str:
        return format_money(obj.total_amount)

    total_display.short_description = "Total"

    def return_link(self, obj: Order) -> str:
        rr = getattr(obj, "return_request", None)
        if rr is None:
            return "-"
        url = reverse("admin:returns_returnrequest_change", args=[rr.pk])
        return format_html('<a href="{}">{}</a>', url, rr.rma_number)

    return_link.short_description = "Return"
