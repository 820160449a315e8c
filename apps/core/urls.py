# apps/core/urls.py

from django.urls import path

from . import views

app_name = 'core'

urlpatterns = [
    # === MONITORING ===
    path('health/', views.health_check, name='health'),

    # === API ===
    path('api/boards/', views.boards, name='boards'),
    path('api/clients/', views.clients, name='clients'),
]
