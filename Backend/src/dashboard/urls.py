from django.urls import path

from . import views

urlpatterns = [
    path("", views.dashboard_global, name="dashboard_global"),
    path("laboratoire", views.dashboard_laboratoire, name="dashboard_laboratoire"),
    path("qualite", views.dashboard_qualite, name="dashboard_qualite"),
    path("hse", views.dashboard_hse, name="dashboard_hse"),
]
