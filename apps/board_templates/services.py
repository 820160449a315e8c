# apps/board_templates/services.py

"""
Persistence side of templates

Every operation runs in one transaction: a template or board is never
left half created. The task cap and orphaned subtasks are reported in
the result, they never abort the operation.
"""

import logging
from collections import namedtuple

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from apps.board.positions import next_position, reindex
from apps.board.services import broadcast_board_event
from apps.core.forms import parse_recurring_config
from apps.core.models import Board, BoardTemplate, Task, TemplateTask
from apps.core.permissions import BoardPermissions, check_board_access
from apps.core.utils import DEFAULT_STATUS_OPTIONS, default_status_id, with_terminal_flags

from .expander import expand, relative_due_days, template_task_cap

logger = logging.getLogger(__name__)

_UNSET = object()

TemplateApplication = namedtuple('TemplateApplication', ['board', 'tasks', 'cap_exceeded', 'warnings'])
TemplateCapture = namedtuple('TemplateCapture', ['template', 'tasks_captured', 'cap_exceeded'])


def _check_can_use(user, template):
    if not BoardPermissions.can_use_template(user, template):
        raise PermissionDenied(f"No access to template {template.pk}")


def _check_can_edit(user, template):
    if not BoardPermissions.can_edit_template(user, template):
        raise PermissionDenied("Only the creator or an admin can edit this template")


def _identity(options):
    return {option['id']: option['id'] for option in options or []}


# === INSTANTIATION ===

def _persist_expansion(board, result, user):
    """Creates the expanded tasks, parents first"""
    created = {}
    for expanded in result.tasks:
        task = Task.objects.create(
            board=board,
            parent=created.get(expanded.parent_source_id),
            title=expanded.title,
            description=expanded.description,
            status=expanded.status,
            section=expanded.section,
            due_date=expanded.due_date,
            recurring_config=expanded.recurring_config,
            position=expanded.position,
            created_by=user,
        )
        if not expanded.is_subtask:
            created[expanded.source_id] = task
    return len(result.tasks)


def apply_template_to_board(template, board, user, status_mapping=None, section_mapping=None,
                            anchor_date=None):
    """
    Adds the template's tasks to an existing board

    The mappings translate template status/section ids into board ids,
    unmapped statuses fall back to the board's default column.
    New top-level tasks go after the board's current last task.
    """
    _check_can_use(user, template)
    check_board_access(user, board)

    if status_mapping is None:
        status_mapping = _identity(template.status_options)
    if section_mapping is None:
        section_mapping = _identity(template.section_options)

    result = expand(
        template.tasks.all(),
        anchor_date or timezone.localdate(),
        status_mapping,
        section_mapping,
        board.default_status(),
        valid_statuses=board.status_ids(),
        start_position=next_position(board.max_top_level_position()),
        task_list=template.is_task_list,
        valid_sections=board.section_ids(),
    )

    with transaction.atomic():
        created = _persist_expansion(board, result, user)

    logger.info(f"📋 Template '{template.name}' applied to board {board.id}: {created} tasks")
    broadcast_board_event(board.id, 'board_refresh', {'reason': 'template_applied'})
    return TemplateApplication(board, created, result.cap_exceeded, result.warnings)


def create_board_from_template(template, user, name, client=None, anchor_date=None):
    """
    Creates a new board with the template's statuses, sections and tasks

    Only board templates can create boards, task lists are applied to
    existing boards instead.
    """
    _check_can_use(user, template)

    if template.is_task_list:
        raise ValidationError("Task lists cannot create boards, apply them to a board instead")
    if not BoardPermissions.is_manager_or_admin(user):
        raise PermissionDenied("Only managers and admins can create boards")
    if client is not None and client.company != user.company:
        raise PermissionDenied("Client belongs to another company")

    with transaction.atomic():
        board = Board.objects.create(
            company=user.company,
            client=client,
            name=name,
            icon=template.icon,
            color=template.color,
            status_options=with_terminal_flags(template.status_options),
            section_options=[dict(option) for option in template.section_options or []],
            created_by=user,
        )
        board.members.add(user)

        result = expand(
            template.tasks.all(),
            anchor_date or timezone.localdate(),
            _identity(board.status_options),
            _identity(board.section_options),
            board.default_status(),
            valid_statuses=board.status_ids(),
            start_position=0,
            valid_sections=board.section_ids(),
        )
        created = _persist_expansion(board, result, user)

    logger.info(f"📋 Board '{name}' created from template '{template.name}': {created} tasks")
    return TemplateApplication(board, created, result.cap_exceeded, result.warnings)


# === CAPTURE ===

def _ordered_board_tasks(board):
    """Top-level tasks by column then position, each followed by its subtasks"""
    column_order = {option['id']: index for index, option in enumerate(board.get_status_options())}
    tasks = list(board.tasks.filter(archived_at__isnull=True))

    top_level = sorted(
        (task for task in tasks if task.parent_id is None),
        key=lambda task: (column_order.get(task.status, len(column_order)), task.position, task.id)
    )
    top_level_ids = {task.id for task in top_level}
    children = [task for task in tasks if task.parent_id in top_level_ids]
    return top_level, children


def create_template_from_board(board, user, name, description='', include_tasks=True, capture_date=None):
    """
    Snapshots a board into a board template

    Due dates become offsets from capture_date (today by default).
    Boards above the task cap produce a template without tasks.
    """
    check_board_access(user, board)
    capture_date = capture_date or timezone.localdate()

    top_level, children = _ordered_board_tasks(board) if include_tasks else ([], [])
    cap_exceeded = len(top_level) + len(children) > template_task_cap()

    with transaction.atomic():
        template = BoardTemplate.objects.create(
            name=name,
            description=description,
            type='board_template',
            icon=board.icon,
            color=board.color,
            status_options=with_terminal_flags(board.status_options),
            section_options=[dict(option) for option in board.section_options or []],
            created_by=user,
        )

        captured = 0
        if cap_exceeded:
            logger.warning(
                f"⚠️ Board {board.id} has {len(top_level) + len(children)} tasks, "
                f"template '{name}' created without tasks"
            )
        else:
            parents = {}
            for update, task in zip(reindex(t.id for t in top_level), top_level):
                parents[task.id] = TemplateTask.objects.create(
                    template=template,
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    section=task.section,
                    relative_due_days=relative_due_days(task.due_date, capture_date),
                    recurring_config=task.recurring_config,
                    position=update.position,
                )

            siblings = {}
            for task in children:
                siblings.setdefault(task.parent_id, []).append(task)
            for parent_id, subtasks in siblings.items():
                for update, task in zip(reindex(t.id for t in subtasks), subtasks):
                    TemplateTask.objects.create(
                        template=template,
                        parent=parents[parent_id],
                        title=task.title,
                        description=task.description,
                        status=task.status,
                        section=task.section,
                        relative_due_days=relative_due_days(task.due_date, capture_date),
                        position=update.position,
                    )
            captured = len(top_level) + len(children)

    logger.info(f"📋 Template '{name}' captured from board {board.id}: {captured} tasks")
    return TemplateCapture(template, captured, cap_exceeded)


# === TEMPLATE CRUD ===

def create_template(user, name, description='', status_options=None, section_options=None, icon='', color=''):
    """Empty board template, with the default statuses unless given"""
    return BoardTemplate.objects.create(
        name=name,
        description=description,
        type='board_template',
        icon=icon,
        color=color,
        status_options=with_terminal_flags(status_options or DEFAULT_STATUS_OPTIONS),
        section_options=section_options or [],
        created_by=user,
    )


def create_task_list(user, name, description='', icon='', color=''):
    """Template of plain tasks, without statuses or sections"""
    return BoardTemplate.objects.create(
        name=name,
        description=description,
        type='task_list',
        icon=icon,
        color=color,
        created_by=user,
    )


def delete_template(template, user):
    _check_can_edit(user, template)
    template.delete()


def add_template_task(template, user, title, parent=None, description='', status=None, section=None,
                      relative_due_days=None, recurring_config=None):
    """Appends a task (or a subtask of a top-level task) to the template"""
    _check_can_edit(user, template)

    if parent is not None:
        siblings = parent.subtasks.all()
    else:
        siblings = template.tasks.filter(parent__isnull=True)
    max_position = siblings.aggregate(max_position=Max('position'))['max_position']

    if template.is_task_list:
        status, section = None, None
    elif status is None:
        status = default_status_id(template.status_options)

    template_task = TemplateTask(
        template=template,
        parent=parent,
        title=title,
        description=description or '',
        status=status,
        section=section,
        relative_due_days=relative_due_days,
        recurring_config=parse_recurring_config(recurring_config),
        position=next_position(max_position),
    )
    if parent is not None and template_task.recurring_config:
        raise ValidationError("Subtasks cannot have recurring configuration")
    template_task.full_clean()
    template_task.save()
    return template_task


def reorder_template_tasks(template, user, ordered_ids, parent=None):
    """Renumbers the template's top-level tasks (or a parent's subtasks) in the given order"""
    _check_can_edit(user, template)

    siblings = {
        task.id: task
        for task in template.tasks.filter(parent=parent, id__in=ordered_ids)
    }
    unknown = [task_id for task_id in ordered_ids if task_id not in siblings]
    if unknown:
        raise ValidationError(f"Template tasks {unknown} are not siblings in this template")

    with transaction.atomic():
        for update in reindex(ordered_ids):
            siblings[update.id].position = update.position
        TemplateTask.objects.bulk_update(list(siblings.values()), ['position'])

    return len(siblings)


def bulk_update_template_tasks(template, user, task_ids, section=_UNSET, relative_due_days=_UNSET):
    """Sets section and/or relative due days on many template tasks at once"""
    _check_can_edit(user, template)

    task_ids = set(task_ids)
    tasks = template.tasks.filter(id__in=task_ids)
    if tasks.count() != len(task_ids):
        raise ValidationError("Every task must belong to the template")

    changes = {}
    if section is not _UNSET:
        if section and section not in {option['id'] for option in template.section_options or []}:
            raise ValidationError(f"Unknown section '{section}'")
        changes['section'] = section
    if relative_due_days is not _UNSET:
        changes['relative_due_days'] = relative_due_days
    if not changes:
        return 0

    with transaction.atomic():
        return tasks.update(**changes)
