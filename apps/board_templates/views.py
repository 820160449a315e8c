# apps/board_templates/views.py

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db.models import Q
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from apps.board.recurrence import label
from apps.core.models import Board, BoardTemplate, Client
from apps.core.responses import json_body, json_errors, parse_date, parse_ids

from . import services
from .expander import template_task_cap


def _visible_templates(user):
    """Templates of the user's company (or without creator)"""
    return BoardTemplate.objects.filter(
        Q(created_by__company=user.company) | Q(created_by__isnull=True)
    )


def _get_template(user, template_id):
    return _visible_templates(user).get(id=template_id)


def serialize_template(template, with_tasks=False):
    data = {
        'id': template.id,
        'name': template.name,
        'description': template.description,
        'type': template.type,
        'icon': template.icon,
        'color': template.color,
        'status_options': template.status_options,
        'section_options': template.section_options,
    }
    if with_tasks:
        data['tasks'] = [
            {
                'id': task.id,
                'parent_id': task.parent_id,
                'title': task.title,
                'status': task.status,
                'section': task.section,
                'relative_due_days': task.relative_due_days,
                'position': task.position,
                'recurrence': label(task.recurring_config) if task.recurring_config else None,
            }
            for task in template.tasks.all()
        ]
    return data


def _application_response(application, status=200):
    return JsonResponse({
        'success': True,
        'board_id': application.board.id,
        'tasks_created': application.tasks,
        'cap_exceeded': application.cap_exceeded,
        'cap': template_task_cap(),
        'warnings': application.warnings,
    }, status=status)


@login_required
@require_http_methods(["GET", "POST"])
@json_errors
def templates(request):
    """
    GET: templates available to the user's company
    POST: creates an empty board template or task list
    """
    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'templates': [serialize_template(t) for t in _visible_templates(request.user)],
        })

    data = json_body(request)
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError("'name' is required")

    if data.get('type') == 'task_list':
        template = services.create_task_list(
            request.user, name, data.get('description', ''), data.get('icon', ''), data.get('color', '')
        )
    else:
        template = services.create_template(
            request.user,
            name,
            description=data.get('description', ''),
            status_options=data.get('status_options'),
            section_options=data.get('section_options'),
            icon=data.get('icon', ''),
            color=data.get('color', ''),
        )
    return JsonResponse({'success': True, 'template': serialize_template(template)}, status=201)


@login_required
@require_http_methods(["GET", "DELETE"])
@json_errors
def template_detail(request, template_id):
    template = _get_template(request.user, template_id)

    if request.method == 'DELETE':
        services.delete_template(template, request.user)
        return JsonResponse({'success': True})

    return JsonResponse({'success': True, 'template': serialize_template(template, with_tasks=True)})


@login_required
@require_POST
@json_errors
def add_task(request, template_id):
    data = json_body(request)
    template = _get_template(request.user, template_id)
    parent = template.tasks.get(id=data['parent_id']) if data.get('parent_id') else None

    relative_days = data.get('relative_due_days')
    if relative_days is not None and not isinstance(relative_days, int):
        raise ValidationError("'relative_due_days' must be an integer")

    template_task = services.add_template_task(
        template,
        request.user,
        title=data.get('title', ''),
        parent=parent,
        description=data.get('description', ''),
        status=data.get('status'),
        section=data.get('section'),
        relative_due_days=relative_days,
        recurring_config=data.get('recurring_config'),
    )
    return JsonResponse({'success': True, 'id': template_task.id, 'position': template_task.position}, status=201)


@login_required
@require_POST
@json_errors
def reorder_tasks(request, template_id):
    data = json_body(request)
    template = _get_template(request.user, template_id)
    parent = template.tasks.get(id=data['parent_id']) if data.get('parent_id') else None

    reordered = services.reorder_template_tasks(
        template, request.user, parse_ids(data.get('ordered_ids'), 'ordered_ids'), parent=parent
    )
    return JsonResponse({'success': True, 'reordered': reordered})


@login_required
@require_POST
@json_errors
def bulk_update_tasks(request, template_id):
    data = json_body(request)
    template = _get_template(request.user, template_id)

    changes = {}
    if 'section' in data:
        changes['section'] = data['section'] or None
    if 'relative_due_days' in data:
        changes['relative_due_days'] = data['relative_due_days']

    updated = services.bulk_update_template_tasks(
        template, request.user, parse_ids(data.get('task_ids'), 'task_ids'), **changes
    )
    return JsonResponse({'success': True, 'updated': updated})


@login_required
@require_POST
@json_errors
def apply_to_board(request, template_id):
    """
    Adds the template's tasks to an existing board
    Body: board_id, status_mapping, section_mapping, anchor_date
    """
    data = json_body(request)
    template = _get_template(request.user, template_id)
    board = Board.objects.get(id=data.get('board_id'))

    application = services.apply_template_to_board(
        template,
        board,
        request.user,
        status_mapping=data.get('status_mapping'),
        section_mapping=data.get('section_mapping'),
        anchor_date=parse_date(data.get('anchor_date'), 'anchor_date'),
    )
    return _application_response(application)


@login_required
@require_POST
@json_errors
def create_board(request, template_id):
    data = json_body(request)
    template = _get_template(request.user, template_id)

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError("'name' is required")

    client = None
    if data.get('client_id'):
        client = Client.objects.get(id=data['client_id'], company=request.user.company)

    application = services.create_board_from_template(
        template,
        request.user,
        name,
        client=client,
        anchor_date=parse_date(data.get('anchor_date'), 'anchor_date'),
    )
    return _application_response(application, status=201)


@login_required
@require_POST
@json_errors
def capture_board(request, board_id):
    """Saves a board (optionally with its tasks) as a new template"""
    data = json_body(request)
    board = Board.objects.get(id=board_id)

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError("'name' is required")

    capture = services.create_template_from_board(
        board,
        request.user,
        name,
        description=data.get('description', ''),
        include_tasks=data.get('include_tasks', True),
    )
    return JsonResponse({
        'success': True,
        'template': serialize_template(capture.template),
        'tasks_captured': capture.tasks_captured,
        'cap_exceeded': capture.cap_exceeded,
        'cap': template_task_cap(),
    }, status=201)
