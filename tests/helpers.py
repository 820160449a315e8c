# tests/helpers.py

from itertools import count

from apps.core.models import Board, Task, User

_sequence = count(1)


def make_user(company='Acme', role='member', **extra):
    number = next(_sequence)
    return User.objects.create_user(
        username=extra.pop('username', f'user{number}'),
        password='secret-pass',
        company=company,
        role=role,
        **extra
    )


def make_board(user, name='Board', members=(), **extra):
    board = Board.objects.create(company=user.company, name=name, created_by=user, **extra)
    board.members.add(user, *members)
    return board


def make_task(board, title='Task', status=None, position=0, **extra):
    return Task.objects.create(
        board=board,
        title=title,
        status=status or board.default_status(),
        position=position,
        **extra
    )


DAILY = {'frequency': 'daily', 'interval': 1}
