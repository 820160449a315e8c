# apps/board/__init__.py

"""
Board - task operations of the kanban board

Features:
- Recurrence engine and automatic spawning of the next occurrence
- Drag-and-drop moves and position reindexing
- Bulk operations
- WebSockets for real time updates
"""
