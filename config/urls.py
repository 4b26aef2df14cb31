from django.contrib import admin
from django.http import HttpResponse
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    # Healthcheck endpoint
    path("healthz", lambda _request: HttpResponse("ok")),
    path("t/<slug:slug>/", include("apps.offers.urls")),
    path("t/<slug:slug>/loyalty/", include("apps.loyalty.urls")),
    path("t/<slug:slug>/orders/", include("apps.orders.urls")),
]
