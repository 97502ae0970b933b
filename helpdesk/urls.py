"""
helpdesk/urls.py
================
Root URL configuration. The Django admin is the only mounted surface.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path("admin/", admin.site.urls),
]
