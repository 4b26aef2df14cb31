from django.urls import path

from . import views

app_name = "loyalty"

urlpatterns = [
    path("", views.lookup, name="lookup"),
    path("opt-in", views.opt_in, name="opt_in"),
]
