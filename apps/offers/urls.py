from django.urls import path

from . import views_public as views

app_name = "offers"

urlpatterns = [
    path("cart/", views.cart_view, name="cart"),
    path("cart/add", views.cart_add, name="cart_add"),
    path("cart/update", views.cart_update, name="cart_update"),
    path("cart/remove", views.cart_remove, name="cart_remove"),
    path("cart/clear", views.cart_clear, name="cart_clear"),
    # Bundles
    path("bundles/suggestions", views.bundle_suggestions, name="bundle_suggestions"),
    path("bundles/<uuid:offer_id>/add", views.bundle_add, name="bundle_add"),
    path("bundles/<uuid:offer_id>/accept", views.bundle_accept, name="bundle_accept"),
    # Offers and promo codes
    path("offers/", views.offers_list, name="offers"),
    path("offers/<uuid:offer_id>/add", views.offer_add, name="offer_add"),
    path("promo/validate", views.promo_validate, name="promo_validate"),
    path("promo/remove", views.promo_remove, name="promo_remove"),
]
