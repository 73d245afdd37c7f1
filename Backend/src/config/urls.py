from django.contrib import admin
from django.urls import path, include

from common.views import RootInfoView
from dashboard.views import ActivitesRecentesView

urlpatterns = [
    path("", RootInfoView.as_view(), name="root_info"),
    path("admin/", admin.site.urls),

    # APIs
    path("api/", include("common.urls")),
    path("api/auth/", include("users.urls")),
    path("api/qhse/", include("qhse.urls")),
    path("api/qualite/", include("qualite.urls")),
    path("api/hse/", include("hse.urls")),
    path("api/laboratoire/", include("laboratoire.urls")),
    path("api/notifications/", include("notifications.urls")),
    path("api/dashboard/", include("dashboard.urls")),
    path("api/activities/recent", ActivitesRecentesView.as_view(), name="activites_recentes"),
]
