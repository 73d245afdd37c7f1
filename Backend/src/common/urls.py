from django.urls import path
from .health import health, db_test
from .views import PingView, InfoView

urlpatterns = [
    path("health", health, name="health"),
    path("db-test", db_test, name="db_test"),
    path("ping", PingView.as_view(), name="ping"),
    path("info", InfoView.as_view(), name="info"),
]
