# apps/core/permissions.py

from functools import wraps

from django.core.exceptions import PermissionDenied
from django.http import JsonResponse


class BoardPermissions:
    """
    Access rules of the task board
    Based on the tenant (company) and the user role: admin, manager, member
    """

    @staticmethod
    def is_admin(user):
        return user.is_authenticated and user.role == 'admin'

    @staticmethod
    def is_manager_or_admin(user):
        return user.is_authenticated and user.role in ['admin', 'manager']

    @staticmethod
    def can_access_board(user, board):
        """Same company and (admin or board member)"""
        if not user.is_authenticated:
            return False
        return user.can_access_board(board)

    @staticmethod
    def can_edit_template(user, template):
        """The creator, or an admin of the company the template is shared in"""
        if not BoardPermissions.can_use_template(user, template):
            return False
        return template.created_by_id == user.id or BoardPermissions.is_admin(user)

    @staticmethod
    def can_use_template(user, template):
        """Templates are shared inside the company of their creator"""
        if not user.is_authenticated:
            return False
        if template.created_by is None:
            return True
        return template.created_by.company == user.company


def check_board_access(user, board):
    """Raises PermissionDenied when the user cannot reach the board"""
    if not BoardPermissions.can_access_board(user, board):
        raise PermissionDenied(f"No access to board {board.pk}")


# Decorators for views

def requires_board_access(view_func):
    """
    Decorator that checks board access
    Expects the view to receive board_id and injects request.board
    """

    @wraps(view_func)
    def wrapped_view(request, board_id, *args, **kwargs):
        from .models import Board

        try:
            board = Board.objects.get(id=board_id)
        except Board.DoesNotExist:
            return JsonResponse({'success': False, 'error': 'Board not found'}, status=404)

        if not BoardPermissions.can_access_board(request.user, board):
            return JsonResponse({'success': False, 'error': 'No access to this board'}, status=403)

        request.board = board
        return view_func(request, board_id, *args, **kwargs)

    return wrapped_view
