"""URL configuration for the ShopiForm service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("forms.urls")),
    path("apps/form/", include("submissions.urls")),
]
