# apps/board/urls.py

from django.urls import path

from . import views

app_name = 'board'

urlpatterns = [
    # Board content
    path('<int:board_id>/tasks/', views.board_tasks, name='tasks'),
    path('<int:board_id>/tasks/create/', views.create_task, name='create_task'),

    # Drag-and-drop
    path('tasks/<int:task_id>/move/', views.move_task, name='move_task'),
    path('tasks/<int:task_id>/status/', views.update_status, name='update_status'),
    path('tasks/<int:task_id>/insert/', views.insert_between, name='insert_between'),
    path('tasks/positions/', views.update_positions, name='update_positions'),

    # Bulk operations
    path('tasks/bulk/update/', views.bulk_update, name='bulk_update'),
    path('tasks/bulk/duplicate/', views.bulk_duplicate, name='bulk_duplicate'),
    path('tasks/bulk/delete/', views.bulk_delete, name='bulk_delete'),

    # Recurring series
    path('tasks/<int:task_id>/series/update/', views.update_series, name='update_series'),
    path('tasks/<int:task_id>/series/delete/', views.delete_series, name='delete_series'),
    path('tasks/<int:task_id>/series/delete-future/', views.delete_future, name='delete_future'),
    path('recurrence/preview/', views.recurrence_preview, name='recurrence_preview'),
]
