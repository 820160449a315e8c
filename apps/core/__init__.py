# apps/core/__init__.py

"""
Core - base app of the task board

Contains:
- Multi-tenant models (User, Client, Board, Task, BoardTemplate, TemplateTask)
- Status option helpers and the board permission rules
- Recurring configuration validation
- Seed command for development
"""
