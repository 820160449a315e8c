# config/urls.py

from django.conf import settings
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Applications
    path('', include('apps.core.urls')),
    path('board/', include('apps.board.urls')),
    path('templates/', include('apps.board_templates.urls')),
]

if 'health_check' in settings.INSTALLED_APPS:
    urlpatterns += [path('ht/', include('health_check.urls'))]
