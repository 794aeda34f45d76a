from django.urls import path

from . import views

app_name = "quoting"

urlpatterns = [
    path('catalog/', views.catalog_view, name='catalog'),
    path('quote/', views.quote_view, name='quote'),
]
