from django.urls import path

from . import views

app_name = "orders"

urlpatterns = [
    path("", views.submit, name="submit"),
    path("<str:public_code>/", views.detail, name="detail"),
]
