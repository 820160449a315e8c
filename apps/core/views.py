# apps/core/views.py

from django.contrib.auth.decorators import login_required
from django.core.cache import cache
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError, transaction
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods

from .models import Board, Client, User
from .permissions import BoardPermissions
from .responses import json_body, json_errors
from .utils import with_terminal_flags

VERSION = '0.1.0'


def health_check(request):
    """
    Health check for monitoring
    """
    try:
        User.objects.exists()

        cache.set('health_check', 'ok', 60)
        cache.get('health_check')
    except DatabaseError as e:
        return JsonResponse({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': timezone.now().isoformat(),
            'version': VERSION
        }, status=500)

    return JsonResponse({
        'status': 'healthy',
        'database': 'ok',
        'cache': 'ok',
        'timestamp': timezone.now().isoformat(),
        'version': VERSION
    })


def serialize_board(board):
    return {
        'id': board.id,
        'name': board.name,
        'client_id': board.client_id,
        'company': board.company,
        'color': board.color,
        'icon': board.icon,
        'status_options': board.get_status_options(),
        'section_options': board.get_section_options(),
    }


@login_required
@require_http_methods(["GET", "POST"])
@json_errors
def boards(request):
    """
    GET: boards the user can open (tenant isolation applied)
    POST: creates a board, the creator becomes a member
    """
    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'boards': [serialize_board(board) for board in request.user.get_accessible_boards()],
        })

    if not BoardPermissions.is_manager_or_admin(request.user):
        raise PermissionDenied("Only managers and admins can create boards.")

    data = json_body(request)
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError("'name' is required")

    client = None
    if data.get('client_id'):
        client = Client.objects.get(id=data['client_id'], company=request.user.company)

    with transaction.atomic():
        board = Board.objects.create(
            company=request.user.company,
            client=client,
            name=name,
            color=data.get('color', ''),
            icon=data.get('icon', ''),
            status_options=with_terminal_flags(data.get('status_options')),
            section_options=data.get('section_options') or [],
            created_by=request.user,
        )
        board.members.add(request.user)

    return JsonResponse({'success': True, 'board': serialize_board(board)}, status=201)


@login_required
@require_GET
def clients(request):
    return JsonResponse({
        'success': True,
        'clients': [
            {'id': client.id, 'name': client.name, 'slug': client.slug, 'color': client.color}
            for client in Client.objects.filter(company=request.user.company)
        ],
    })
