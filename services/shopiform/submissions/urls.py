"""Route registration for the storefront app proxy."""
from __future__ import annotations

from django.urls import path

from forms.views import public_form

from .views import submit

urlpatterns = [
    path("submit/", submit, name="form-submit"),
    path("<str:code>/", public_form, name="form-public"),
]
