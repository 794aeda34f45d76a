"""
URL configuration for the quote service
"""

from django.urls import include, path

urlpatterns = [
    path("quotes/", include("quoting.urls")),
]
