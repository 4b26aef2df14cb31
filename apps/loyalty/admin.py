from django.contrib import admin

from .models import CustomerLoyalty, LoyaltyTransaction


class LoyaltyTransactionInline(admin.TabularInline):
    model = LoyaltyTransaction
    extra = 0
    readonly_fields = ("kind", "points", "order", "created_at")


@admin.register(CustomerLoyalty)
class CustomerLoyaltyAdmin(admin.ModelAdmin):
    list_display = ("email", "foodtruck", "loyalty_points", "lifetime_points", "loyalty_opt_in")
    list_filter = ("foodtruck", "loyalty_opt_in")
    search_fields = ("email", "name")
    inlines = [LoyaltyTransactionInline]
