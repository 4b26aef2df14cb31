from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from . import services
from .models import Order, OrderAppliedOffer, OrderItem, OrderStatusChange


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("name_snapshot", "qty", "unit_price_cents_snapshot", "line_subtotal_cents", "bundle_name", "offer_role")
    readonly_fields = fields


class OrderAppliedOfferInline(admin.TabularInline):
    model = OrderAppliedOffer
    extra = 0
    readonly_fields = ("offer_name", "offer_type", "times_applied", "discount_cents", "free_item_name")


class OrderStatusChangeInline(admin.TabularInline):
    model = OrderStatusChange
    extra = 0
    readonly_fields = ("status", "source", "note", "created_at")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("public_code", "foodtruck", "status", "customer_name", "pickup_time", "total_cents")
    list_filter = ("foodtruck", "status")
    search_fields = ("public_code", "customer_email", "customer_name")
    inlines = [OrderItemInline, OrderAppliedOfferInline, OrderStatusChangeInline]
    actions = ["confirm_orders"]

    @admin.action(description="Confirmer les commandes sélectionnées")
    def confirm_orders(self, request, queryset):
        confirmed = 0
        for order in queryset.select_related("foodtruck"):
            try:
                services.confirm_order(order, source="admin")
                confirmed += 1
            except ValidationError as exc:
                self.message_user(request, f"{order.public_code}: {' '.join(exc.messages)}", messages.WARNING)
        self.message_user(request, f"{confirmed} commande(s) confirmée(s)")
