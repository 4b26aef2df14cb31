from django.contrib import admin

from .models import Offer, OfferItem, OfferUse


class OfferItemInline(admin.TabularInline):
    model = OfferItem
    extra = 0
    raw_id_fields = ("menu_item",)


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "foodtruck",
        "offer_type",
        "code",
        "is_active",
        "start_date",
        "end_date",
        "current_uses",
        "total_discount_given_cents",
    )
    list_filter = ("offer_type", "is_active", "foodtruck")
    search_fields = ("name", "code", "foodtruck__name")
    ordering = ("foodtruck", "display_order")
    inlines = [OfferItemInline]
    list_select_related = ("foodtruck",)


@admin.register(OfferUse)
class OfferUseAdmin(admin.ModelAdmin):
    list_display = ("offer", "customer_email", "order", "discount_cents", "created_at")
    search_fields = ("customer_email", "offer__name")
    ordering = ("-created_at",)
    list_select_related = ("offer", "order")
