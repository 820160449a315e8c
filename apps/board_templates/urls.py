# apps/board_templates/urls.py

from django.urls import path

from . import views

app_name = 'board_templates'

urlpatterns = [
    path('', views.templates, name='templates'),
    path('<int:template_id>/', views.template_detail, name='detail'),

    # Template tasks
    path('<int:template_id>/tasks/', views.add_task, name='add_task'),
    path('<int:template_id>/tasks/reorder/', views.reorder_tasks, name='reorder_tasks'),
    path('<int:template_id>/tasks/bulk-update/', views.bulk_update_tasks, name='bulk_update_tasks'),

    # Instantiation
    path('<int:template_id>/apply/', views.apply_to_board, name='apply'),
    path('<int:template_id>/create-board/', views.create_board, name='create_board'),

    # Board -> template
    path('from-board/<int:board_id>/', views.capture_board, name='capture_board'),
]
