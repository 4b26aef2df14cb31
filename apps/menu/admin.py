from django.contrib import admin

from .models import Category, CategoryOption, CategoryOptionGroup, Foodtruck, MenuItem


@admin.register(Foodtruck)
class FoodtruckAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active", "promo_codes_stackable", "offers_stackable", "loyalty_enabled")
    list_filter = ("is_active", "loyalty_enabled")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "foodtruck", "display_order", "is_active")
    list_filter = ("is_active", "foodtruck")
    ordering = ("foodtruck", "display_order")


class CategoryOptionInline(admin.TabularInline):
    model = CategoryOption
    extra = 0
    ordering = ("display_order",)


@admin.register(CategoryOptionGroup)
class CategoryOptionGroupAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "is_required", "is_multiple", "display_order")
    list_filter = ("is_required", "is_multiple")
    search_fields = ("name", "category__name")
    inlines = [CategoryOptionInline]
    list_select_related = ("category",)


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ("name", "foodtruck", "category", "price_cents", "is_available", "is_archived", "is_daily_special")
    list_filter = ("is_available", "is_archived", "is_daily_special", "foodtruck")
    search_fields = ("name", "description")
    list_select_related = ("foodtruck", "category")
