# apps/board/views.py

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from apps.core.forms import parse_recurring_config
from apps.core.models import Board, Task
from apps.core.permissions import check_board_access, requires_board_access
from apps.core.responses import json_body, json_errors, parse_date, parse_ids

from . import services
from .recurrence import describe, label, next_occurrence, should_generate_next

PREVIEW_MAX_DATES = 12


def _get_task(task_id):
    return Task.objects.select_related('board', 'parent').get(id=task_id)


def _move_response(result):
    data = {
        'success': not result.needs_confirmation,
        'state': result.state,
        'task': services.serialize_task(result.task),
    }
    if result.needs_confirmation:
        data['incomplete_subtasks'] = result.incomplete_subtasks
    if result.spawned is not None:
        data['next_occurrence'] = services.serialize_task(result.spawned)
    return JsonResponse(data, status=409 if result.needs_confirmation else 200)


@login_required
@require_GET
@requires_board_access
def board_tasks(request, board_id):
    """
    Tasks of the board grouped by status column
    Subtasks are nested under their parent
    """
    board = request.board
    tasks = board.tasks.filter(archived_at__isnull=True).prefetch_related('assignees')

    subtasks = {}
    for task in tasks:
        if task.parent_id:
            subtasks.setdefault(task.parent_id, []).append(task)

    columns = []
    for option in board.get_status_options():
        column_tasks = []
        for task in tasks:
            if task.parent_id or task.status != option['id']:
                continue
            data = services.serialize_task(task)
            data['assignee_ids'] = [user.id for user in task.assignees.all()]
            data['subtasks'] = [services.serialize_task(s) for s in subtasks.get(task.id, [])]
            if task.recurring_config:
                data['recurrence_label'] = label(task.recurring_config)
            column_tasks.append(data)
        columns.append({**option, 'tasks': column_tasks})

    return JsonResponse({
        'success': True,
        'board': {'id': board.id, 'name': board.name, 'sections': board.get_section_options()},
        'columns': columns,
    })


@login_required
@require_POST
@json_errors
@requires_board_access
def create_task(request, board_id):
    data = json_body(request)
    parent = _get_task(data['parent_id']) if data.get('parent_id') else None

    task = services.create_task(
        request.board,
        request.user,
        title=data.get('title', ''),
        status=data.get('status'),
        section=data.get('section'),
        due_date=parse_date(data.get('due_date'), 'due_date'),
        description=data.get('description', ''),
        parent=parent,
        recurring_config=data.get('recurring_config'),
        assignee_ids=data.get('assignee_ids'),
    )
    return JsonResponse({'success': True, 'task': services.serialize_task(task)}, status=201)


@login_required
@require_POST
@json_errors
def move_task(request, task_id):
    """
    Drag-and-drop drop handler
    Answers 409 with the number of open subtasks when confirmation is needed
    """
    data = json_body(request)
    task = _get_task(task_id)

    result = services.move_task(
        task,
        data.get('to_status') or task.status,
        parse_ids(data.get('ordered_ids') or [task.id], 'ordered_ids'),
        request.user,
        complete_subtasks=data.get('complete_subtasks'),
    )
    return _move_response(result)


@login_required
@require_POST
@json_errors
def update_status(request, task_id):
    data = json_body(request)
    if not data.get('status'):
        raise ValidationError("'status' is required")

    result = services.update_task_status(
        _get_task(task_id),
        data['status'],
        request.user,
        complete_subtasks=data.get('complete_subtasks'),
    )
    return _move_response(result)


@login_required
@require_POST
@json_errors
def update_positions(request):
    data = json_body(request)
    updates = data.get('updates')
    if not isinstance(updates, list) or not updates:
        raise ValidationError("'updates' must be a non-empty list")

    for update in updates:
        if not isinstance(update, dict) or 'id' not in update or 'position' not in update:
            raise ValidationError("Each update needs an id and a position")

    spawned = services.update_task_positions(updates, request.user)
    return JsonResponse({
        'success': True,
        'updated': len(updates),
        'next_occurrences': [services.serialize_task(task) for task in spawned],
    })


@login_required
@require_POST
@json_errors
def insert_between(request, task_id):
    data = json_body(request)
    task = _get_task(task_id)
    before = _get_task(data['before_id']) if data.get('before_id') else None
    after = _get_task(data['after_id']) if data.get('after_id') else None

    position = services.insert_task_between(task, before, after, request.user)
    return JsonResponse({'success': True, 'position': position})


# === BULK ===

@login_required
@require_POST
@json_errors
def bulk_update(request):
    data = json_body(request)
    changes = {}

    if data.get('status'):
        changes['status'] = data['status']
    if 'section' in data:
        changes['section'] = data['section'] or None
    if 'due_date' in data:
        changes['due_date'] = parse_date(data['due_date'], 'due_date')
    if data.get('board_id'):
        board = Board.objects.get(id=data['board_id'])
        check_board_access(request.user, board)
        changes['board'] = board
    if data.get('add_assignee_ids'):
        changes['add_assignee_ids'] = parse_ids(data['add_assignee_ids'], 'add_assignee_ids')
    if data.get('remove_all_assignees'):
        changes['remove_all_assignees'] = True

    updated = services.bulk_update_tasks(parse_ids(data.get('task_ids'), 'task_ids'), request.user, **changes)
    return JsonResponse({'success': True, 'updated': updated})


@login_required
@require_POST
@json_errors
def bulk_duplicate(request):
    data = json_body(request)
    copies = services.bulk_duplicate_tasks(parse_ids(data.get('task_ids'), 'task_ids'), request.user)
    return JsonResponse({
        'success': True,
        'tasks': [services.serialize_task(task) for task in copies],
    })


@login_required
@require_POST
@json_errors
def bulk_delete(request):
    data = json_body(request)
    deleted = services.bulk_delete_tasks(parse_ids(data.get('task_ids'), 'task_ids'), request.user)
    return JsonResponse({'success': True, 'deleted': deleted})


# === RECURRING SERIES ===

@login_required
@require_POST
@json_errors
def update_series(request, task_id):
    data = json_body(request)
    changes = {key: data[key] for key in services.SERIES_FIELDS if key in data}
    updated = services.update_recurring_series(_get_task(task_id), request.user, **changes)
    return JsonResponse({'success': True, 'updated': updated})


@login_required
@require_POST
@json_errors
def delete_series(request, task_id):
    deleted = services.delete_recurring_series(_get_task(task_id), request.user)
    return JsonResponse({'success': True, 'deleted': deleted})


@login_required
@require_POST
@json_errors
def delete_future(request, task_id):
    deleted = services.delete_future_recurring_tasks(_get_task(task_id), request.user)
    return JsonResponse({'success': True, 'deleted': deleted})


@login_required
@require_POST
@json_errors
def recurrence_preview(request):
    """
    Next due dates of a recurring config, for the recurrence dialog
    """
    data = json_body(request)
    config = parse_recurring_config(data.get('config'))
    if config is None:
        raise ValidationError("'config' is required")

    current = parse_date(data.get('from_date'), 'from_date')
    if current is None:
        raise ValidationError("'from_date' is required")

    try:
        count = min(int(data.get('count') or 5), PREVIEW_MAX_DATES)
    except (TypeError, ValueError):
        raise ValidationError("'count' must be an integer")

    dates = []
    # from_date is the first occurrence of the series
    while len(dates) < count and should_generate_next(config, len(dates) + 1):
        current = next_occurrence(config, current)
        if current is None:
            break
        dates.append(current.isoformat())

    return JsonResponse({
        'success': True,
        'description': describe(config),
        'label': label(config),
        'dates': dates,
    })
