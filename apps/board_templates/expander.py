# apps/board_templates/expander.py

"""
Expansion of template tasks into concrete board tasks

Pure: takes template tasks (anything exposing the TemplateTask attributes:
id, parent_id, title, description, status, section, relative_due_days,
recurring_config) in template order and returns what has to be created.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

from django.conf import settings

from apps.board.positions import POSITION_STEP
from apps.board.recurrence import capture_day_of_month

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_TASK_CAP = 200


def template_task_cap():
    return getattr(settings, 'TASKBOARD_TEMPLATE_TASK_CAP', DEFAULT_TEMPLATE_TASK_CAP)


@dataclass
class ExpandedTask:
    source_id: int
    parent_source_id: Optional[int]
    title: str
    description: str
    status: str
    section: Optional[str]
    due_date: Optional[date]
    recurring_config: Optional[Dict]
    position: int

    @property
    def is_subtask(self):
        return self.parent_source_id is not None


@dataclass
class ExpansionResult:
    tasks: List[ExpandedTask] = field(default_factory=list)
    cap_exceeded: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def top_level(self):
        return [task for task in self.tasks if not task.is_subtask]


def relative_due_days(due_date: Optional[date], capture_date: date) -> Optional[int]:
    """Signed day offset stored on template tasks"""
    if due_date is None:
        return None
    return (due_date - capture_date).days


def resolve_due_date(anchor_date: date, offset: Optional[int]) -> Optional[date]:
    if offset is None:
        return None
    return anchor_date + timedelta(days=offset)


def expand(template_tasks: Iterable,
           anchor_date: date,
           status_mapping: Optional[Dict[str, str]],
           section_mapping: Optional[Dict[str, str]],
           default_status: str,
           valid_statuses: Optional[Set[str]] = None,
           start_position: int = 0,
           task_list: bool = False,
           valid_sections: Optional[Set[str]] = None,
           cap: Optional[int] = None) -> ExpansionResult:
    """
    Builds the tasks to create on a board from a template

    - Above `cap` template tasks nothing is expanded and cap_exceeded is set
    - Top-level tasks get start_position + i * POSITION_STEP in template order
    - Subtasks get i * POSITION_STEP inside their parent
    - Subtasks whose parent is not a top-level task of the batch are
      dropped and reported in warnings
    - Task lists ignore template statuses and sections
    """
    template_tasks = list(template_tasks)
    if cap is None:
        cap = template_task_cap()

    if len(template_tasks) > cap:
        logger.warning(f"⚠️ Template with {len(template_tasks)} tasks exceeds the cap of {cap}, no tasks expanded")
        return ExpansionResult(cap_exceeded=True)

    status_mapping = status_mapping or {}
    section_mapping = section_mapping or {}

    def status_for(template_task):
        if task_list or not template_task.status:
            return default_status
        mapped = status_mapping.get(template_task.status)
        if mapped and (valid_statuses is None or mapped in valid_statuses):
            return mapped
        return default_status

    def section_for(template_task):
        if task_list or not template_task.section:
            return None
        mapped = section_mapping.get(template_task.section)
        if mapped and (valid_sections is None or mapped in valid_sections):
            return mapped
        return None

    def build(template_task, position, parent_id=None):
        due_date = resolve_due_date(anchor_date, template_task.relative_due_days)
        # Subtasks never recur
        recurring_config = None
        if parent_id is None:
            recurring_config = capture_day_of_month(template_task.recurring_config, due_date)

        return ExpandedTask(
            source_id=template_task.id,
            parent_source_id=parent_id,
            title=template_task.title,
            description=template_task.description or '',
            status=status_for(template_task),
            section=section_for(template_task),
            due_date=due_date,
            recurring_config=recurring_config,
            position=position,
        )

    top_level = [t for t in template_tasks if t.parent_id is None]
    top_level_ids = {t.id for t in top_level}

    result = ExpansionResult()
    children = {}
    for template_task in template_tasks:
        if template_task.parent_id is None:
            continue
        if template_task.parent_id not in top_level_ids:
            message = f"Subtask '{template_task.title}' skipped: parent {template_task.parent_id} is not a top-level task"
            logger.warning(f"⚠️ {message}")
            result.warnings.append(message)
            continue
        children.setdefault(template_task.parent_id, []).append(template_task)

    for index, template_task in enumerate(top_level):
        result.tasks.append(build(template_task, start_position + index * POSITION_STEP))
        for child_index, child in enumerate(children.get(template_task.id, [])):
            result.tasks.append(build(child, child_index * POSITION_STEP, parent_id=template_task.id))

    return result
