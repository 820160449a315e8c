# apps/board_templates/apps.py

from django.apps import AppConfig


class BoardTemplatesConfig(AppConfig):
    """Board templates app configuration"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.board_templates'
    verbose_name = 'Board templates'
