# apps/board_templates/__init__.py

"""
Board templates - reusable task graphs

Features:
- Board templates (statuses, sections and tasks) and task lists
- Board -> template snapshots with relative due dates
- Template -> board instantiation with status/section remapping
"""
