from django.contrib import admin
from django.urls import include, path

from indexer.apps.api.views import healthz, readyz

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("indexer.apps.api.urls")),
    path("healthz", healthz, name="healthz"),
    path("readyz", readyz, name="readyz"),
]
