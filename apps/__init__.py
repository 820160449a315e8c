# apps/__init__.py

"""
Taskboard - Django applications

- core: models, permissions, tenant isolation
- board: task operations, recurrence engine, drag-and-drop, WebSockets
- board_templates: board templates and task lists
"""

__version__ = '0.1.0'
