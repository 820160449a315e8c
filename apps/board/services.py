# apps/board/services.py

"""
Task operations of the board

Status changes, drag-and-drop moves, positions, bulk operations and
recurring series. Every function runs in a single transaction and
broadcasts the change to the board's WebSocket group after commit.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.core.forms import parse_recurring_config
from apps.core.models import Task, User
from apps.core.permissions import check_board_access

from .positions import next_position, position_between, reindex
from .recurrence import RecurringConfig, capture_day_of_month, next_occurrence, should_generate_next

logger = logging.getLogger(__name__)

_UNSET = object()

SERIES_FIELDS = ('title', 'description', 'section', 'recurring_config')


class MoveState:
    """Outcome of a drag-and-drop gesture or status change"""

    UNCHANGED = 'unchanged'
    REORDERED = 'reordered'
    MOVED = 'moved'
    PENDING_CONFIRMATION = 'pending_confirmation'


@dataclass
class MoveResult:
    state: str
    task: Task
    spawned: Optional[Task] = None
    incomplete_subtasks: int = 0

    @property
    def needs_confirmation(self):
        return self.state == MoveState.PENDING_CONFIRMATION


# === REAL TIME ===

def serialize_task(task):
    return {
        'id': task.id,
        'board_id': task.board_id,
        'parent_id': task.parent_id,
        'title': task.title,
        'status': task.status,
        'section': task.section,
        'position': task.position,
        'due_date': task.due_date.isoformat() if task.due_date else None,
        'recurring_config': task.recurring_config,
        'recurrence_series_id': str(task.recurrence_series_id) if task.recurrence_series_id else None,
    }


def broadcast_board_event(board_id, event_type, message):
    """
    Sends an event to the board_<id> group once the transaction commits
    Handled by BoardConsumer.<event_type>
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    payload = {
        'type': event_type,
        'message': {**message, 'timestamp': timezone.now().isoformat()},
    }

    def send():
        async_to_sync(channel_layer.group_send)(f'board_{board_id}', payload)

    transaction.on_commit(send, robust=True)


# === RECURRENCE ===

def _recurrence_is_atomic():
    return getattr(settings, 'TASKBOARD_RECURRENCE_ATOMIC', True)


def spawn_next_occurrence(task, user=None, today=None):
    """
    Creates the next occurrence of a completed recurring task

    Returns the new task, or None when the task does not recur,
    has no due date or its series has ended.
    """
    if not task.recurring_config or not task.due_date or task.parent_id:
        return None

    stored_config = capture_day_of_month(task.recurring_config, task.due_date)
    config = RecurringConfig.from_dict(stored_config)
    series_id = task.ensure_series_id()

    occurrences = Task.objects.filter(recurrence_series_id=series_id).count()
    if not should_generate_next(config, occurrences):
        logger.info(f"🔁 Series {series_id} reached {occurrences} occurrences, not spawning")
        return None

    next_due = next_occurrence(config, task.due_date, today=today or timezone.localdate())
    if next_due is None:
        logger.info(f"🔁 Series {series_id} ended after task {task.id}")
        return None

    board = task.board
    status = board.default_status()

    new_task = Task.objects.create(
        board=board,
        title=task.title,
        description=task.description,
        status=status,
        section=task.section,
        due_date=next_due,
        recurring_config=stored_config,
        recurrence_series_id=series_id,
        position=next_position(board.max_top_level_position(status)),
        created_by=user or task.created_by,
    )
    new_task.assignees.set(task.assignees.all())

    _clone_subtasks(task, new_task, status, shift=next_due - task.due_date)

    logger.info(f"🔁 Next occurrence of '{task.title}' created for {next_due} (task {new_task.id})")
    return new_task


def _clone_subtasks(source, target, status, shift=None, created_by=None):
    subtasks = list(source.subtasks.all())
    for update, subtask in zip(reindex(s.id for s in subtasks), subtasks):
        due_date = subtask.due_date
        if due_date and shift is not None:
            due_date = due_date + shift

        clone = Task.objects.create(
            board=target.board,
            parent=target,
            title=subtask.title,
            description=subtask.description,
            status=status or subtask.status,
            section=subtask.section,
            due_date=due_date,
            position=update.position,
            created_by=created_by or target.created_by,
        )
        clone.assignees.set(subtask.assignees.all())


def _after_status_change(task, previous_status, user, today=None):
    """Spawns the next occurrence when a task enters a terminal status"""
    board = task.board
    if task.parent_id or not task.is_recurring:
        return None
    if board.is_terminal_status(previous_status) or not board.is_terminal_status(task.status):
        return None

    if _recurrence_is_atomic():
        return spawn_next_occurrence(task, user, today)

    try:
        with transaction.atomic():
            return spawn_next_occurrence(task, user, today)
    except (DatabaseError, ValueError, KeyError):
        logger.exception(f"❌ Could not create next occurrence of task {task.id}")
        return None


# === STATUS AND MOVES ===

def _validate_status(board, status):
    if status not in board.status_ids():
        raise ValidationError(f"Unknown status '{status}' for board {board.name}")


def _enters_terminal(board, from_status, to_status):
    return not board.is_terminal_status(from_status) and board.is_terminal_status(to_status)


def _pending_confirmation(task, to_status, complete_subtasks):
    """Moving a parent with open subtasks into a terminal column needs a choice"""
    if complete_subtasks is not None or task.parent_id:
        return None
    if not _enters_terminal(task.board, task.status, to_status):
        return None

    incomplete = task.incomplete_subtasks().count()
    if incomplete:
        return MoveResult(MoveState.PENDING_CONFIRMATION, task, incomplete_subtasks=incomplete)
    return None


def _complete_subtasks(task, status):
    return task.incomplete_subtasks().update(status=status, updated_at=timezone.now())


def update_task_status(task, status, user, complete_subtasks=None, today=None):
    """
    Changes the status of a task, appending it to the end of the new column

    complete_subtasks: None asks for confirmation when open subtasks exist,
    True moves them along into the terminal status, False leaves them.
    """
    board = task.board
    check_board_access(user, board)
    _validate_status(board, status)

    if status == task.status:
        return MoveResult(MoveState.UNCHANGED, task)

    pending = _pending_confirmation(task, status, complete_subtasks)
    if pending:
        return pending

    with transaction.atomic():
        previous_status = task.status
        task.status = status
        if task.parent_id is None:
            task.position = next_position(board.max_top_level_position(status))
        task.save(update_fields=['status', 'position', 'updated_at'])

        if complete_subtasks and board.is_terminal_status(status):
            _complete_subtasks(task, status)

        spawned = _after_status_change(task, previous_status, user, today)

    _broadcast_move(task, previous_status, user, spawned)
    return MoveResult(MoveState.MOVED, task, spawned)


def move_task(task, to_status, ordered_ids, user, complete_subtasks=None, today=None):
    """
    Applies a drag-and-drop gesture

    ordered_ids is the full order of the destination column (or of the
    parent's subtasks) after the drop, the moved task included.
    Same column: REORDERED. Other column: MOVED. A parent with open
    subtasks dropped into a terminal column without a complete_subtasks
    choice: PENDING_CONFIRMATION and nothing is persisted.
    """
    board = task.board
    check_board_access(user, board)
    _validate_status(board, to_status)

    ordered_ids = list(dict.fromkeys(ordered_ids))
    if task.id not in ordered_ids:
        ordered_ids.append(task.id)

    moved = to_status != task.status
    if moved:
        pending = _pending_confirmation(task, to_status, complete_subtasks)
        if pending:
            return pending

    with transaction.atomic():
        siblings = {
            sibling.id: sibling
            for sibling in Task.objects.filter(board=board, parent_id=task.parent_id, id__in=ordered_ids)
        }
        unknown = [task_id for task_id in ordered_ids if task_id not in siblings]
        if unknown:
            raise ValidationError(f"Tasks {unknown} are not siblings on board {board.name}")

        foreign = [
            sibling.id for sibling in siblings.values()
            if sibling.id != task.id and task.parent_id is None and sibling.status != to_status
        ]
        if foreign:
            raise ValidationError(f"Tasks {foreign} are not in column '{to_status}'")

        previous_status = task.status
        spawned = None
        if moved:
            task.status = to_status
            task.save(update_fields=['status', 'updated_at'])
            if complete_subtasks and board.is_terminal_status(to_status):
                _complete_subtasks(task, to_status)

        changed = []
        for update in reindex(ordered_ids):
            sibling = siblings[update.id]
            if sibling.position != update.position:
                sibling.position = update.position
                changed.append(sibling)
        Task.objects.bulk_update(changed, ['position'])
        task.position = siblings[task.id].position

        if moved:
            spawned = _after_status_change(task, previous_status, user, today)

    _broadcast_move(task, previous_status, user, spawned)
    return MoveResult(MoveState.MOVED if moved else MoveState.REORDERED, task, spawned)


def _broadcast_move(task, previous_status, user, spawned=None):
    broadcast_board_event(task.board_id, 'task_moved', {
        'task': serialize_task(task),
        'previous_status': previous_status,
        'user': user.get_full_name() or user.username,
    })
    if spawned is not None:
        broadcast_board_event(task.board_id, 'task_created', {
            'task': serialize_task(spawned),
            'user': user.get_full_name() or user.username,
        })


def _parse_position_update(update):
    try:
        return {**update, 'id': int(update['id']), 'position': int(update['position'])}
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"Invalid position update: {update!r}")


def update_task_positions(updates, user, today=None):
    """
    Persists a batch of {id, position, status?} updates

    Unknown ids, foreign boards or invalid statuses reject the whole batch.
    Returns the occurrences spawned by tasks entering a terminal status.
    """
    updates = [_parse_position_update(update) for update in updates]
    if not updates:
        return []

    spawned = []
    with transaction.atomic():
        tasks = {task.id: task for task in _load_tasks([u['id'] for u in updates], user)}

        for update in updates:
            task = tasks[update['id']]
            previous_status = task.status
            task.position = update['position']

            status = update.get('status')
            if status and status != task.status:
                _validate_status(task.board, status)
                task.status = status

            task.save(update_fields=['status', 'position', 'updated_at'])

            if task.status != previous_status:
                new_task = _after_status_change(task, previous_status, user, today)
                if new_task is not None:
                    spawned.append(new_task)

    for board_id in {task.board_id for task in tasks.values()}:
        broadcast_board_event(board_id, 'tasks_updated', {
            'task_ids': [task.id for task in tasks.values() if task.board_id == board_id],
        })
    return spawned


def insert_task_between(task, before, after, user):
    """
    Drops a task between two siblings (either may be None for an edge)

    Takes the midpoint when there is room, otherwise renumbers the
    whole sibling list with the task in its new slot.
    """
    check_board_access(user, task.board)

    position = position_between(
        before.position if before else None,
        after.position if after else None,
    )

    with transaction.atomic():
        if position is not None:
            task.position = position
            task.save(update_fields=['position', 'updated_at'])
        else:
            siblings = Task.objects.filter(board=task.board, parent_id=task.parent_id).exclude(id=task.id)
            if task.parent_id is None:
                siblings = siblings.filter(status=task.status)

            ordered = [sibling.id for sibling in siblings]
            slot = ordered.index(before.id) + 1 if before else 0
            ordered.insert(slot, task.id)

            logger.info(f"↕️ Renumbering {len(ordered)} tasks of board {task.board_id}")
            for update in reindex(ordered):
                Task.objects.filter(id=update.id).update(position=update.position)
            task.refresh_from_db(fields=['position'])

    broadcast_board_event(task.board_id, 'tasks_updated', {'task_ids': [task.id]})
    return task.position


# === CREATION ===

def create_task(board, user, title, status=None, section=None, due_date=None, description='',
                parent=None, recurring_config=None, assignee_ids=None):
    """Creates a task at the end of its column (or of its parent's subtasks)"""
    check_board_access(user, board)

    status = status or board.default_status()
    if parent is not None:
        max_position = parent.subtasks.aggregate(max_position=Max('position'))['max_position']
    else:
        max_position = board.max_top_level_position(status)

    task = Task(
        board=board,
        parent=parent,
        title=title,
        description=description or '',
        status=status,
        section=section,
        due_date=due_date,
        recurring_config=capture_day_of_month(parse_recurring_config(recurring_config), due_date),
        position=next_position(max_position),
        created_by=user,
    )
    task.full_clean()

    with transaction.atomic():
        task.save()
        if assignee_ids:
            task.assignees.set(_company_users(assignee_ids, board.company))

    broadcast_board_event(board.id, 'task_created', {
        'task': serialize_task(task),
        'user': user.get_full_name() or user.username,
    })
    return task


# === BULK OPERATIONS ===

def _load_tasks(task_ids, user):
    """Fetches every id or raises, checking access to each board involved"""
    task_ids = list(dict.fromkeys(task_ids))
    tasks = list(Task.objects.select_related('board').filter(id__in=task_ids))

    missing = set(task_ids) - {task.id for task in tasks}
    if missing:
        raise Task.DoesNotExist(f"Tasks not found: {sorted(missing)}")

    for board in {task.board for task in tasks}:
        check_board_access(user, board)

    order = {task_id: index for index, task_id in enumerate(task_ids)}
    return sorted(tasks, key=lambda task: order[task.id])


def _delete_tasks(queryset):
    """Deletes and returns the number of task rows removed, subtasks included"""
    _, per_model = queryset.delete()
    return per_model.get(Task._meta.label, 0)


def _company_users(user_ids, company):
    user_ids = set(user_ids)
    users = list(User.objects.filter(id__in=user_ids, company=company))
    if len(users) != len(user_ids):
        raise ValidationError("Assignees must belong to the board's company")
    return users


def bulk_update_tasks(task_ids, user, status=None, section=_UNSET, due_date=_UNSET, board=None,
                      add_assignee_ids=None, remove_all_assignees=False, today=None):
    """
    Applies the same changes to many tasks, all or nothing

    Moving to another board resets the status to the target's default
    column and clears the section, subtasks go along with their parent and
    cannot be moved on their own. Assignees are added, never replaced,
    unless remove_all_assignees is set.
    """
    with transaction.atomic():
        tasks = _load_tasks(task_ids, user)

        if board is not None:
            check_board_access(user, board)
            # Subtasks follow their parent's board
            stray = [task.id for task in tasks if task.parent_id is not None and task.board_id != board.id]
            if stray:
                raise ValidationError(f"Subtasks cannot be moved to another board: {stray}")

        assignees = []
        if add_assignee_ids:
            company = board.company if board is not None else tasks[0].board.company
            assignees = _company_users(add_assignee_ids, company)

        touched_boards = set()
        for task in tasks:
            previous_status = task.status
            touched_boards.add(task.board_id)

            changed_board = board is not None and board.id != task.board_id
            if changed_board:
                task.board = board
                task.status = board.default_status()
                task.section = None
                task.subtasks.update(board=board, status=board.default_status(), section=None)
                touched_boards.add(board.id)

            if status:
                _validate_status(task.board, status)
                task.status = status
            if section is not _UNSET:
                task.section = section
            if due_date is not _UNSET:
                task.due_date = due_date

            task.save()

            if remove_all_assignees:
                task.assignees.clear()
            if assignees:
                task.assignees.add(*assignees)

            if not changed_board and task.status != previous_status:
                _after_status_change(task, previous_status, user, today)

    for board_id in touched_boards:
        broadcast_board_event(board_id, 'board_refresh', {'reason': 'bulk_update'})
    logger.info(f"✏️ {len(tasks)} tasks updated by {user.username}")
    return len(tasks)


def bulk_duplicate_tasks(task_ids, user):
    """Copies tasks with their subtasks and assignees to the end of their column"""
    copies = []
    with transaction.atomic():
        for task in _load_tasks(task_ids, user):
            if task.parent_id is not None:
                max_position = task.parent.subtasks.aggregate(max_position=Max('position'))['max_position']
            else:
                max_position = task.board.max_top_level_position(task.status)

            copy = Task.objects.create(
                board=task.board,
                parent_id=task.parent_id,
                title=f"{task.title} (copy)",
                description=task.description,
                status=task.status,
                section=task.section,
                due_date=task.due_date,
                recurring_config=task.recurring_config,
                position=next_position(max_position),
                created_by=user,
            )
            copy.assignees.set(task.assignees.all())
            _clone_subtasks(task, copy, status=None, created_by=user)
            copies.append(copy)

    for copy in copies:
        broadcast_board_event(copy.board_id, 'task_created', {
            'task': serialize_task(copy),
            'user': user.get_full_name() or user.username,
        })
    return copies


def bulk_delete_tasks(task_ids, user):
    """Deletes tasks (and their subtasks), all or nothing"""
    with transaction.atomic():
        tasks = _load_tasks(task_ids, user)
        board_ids = {task.board_id for task in tasks}
        deleted = _delete_tasks(Task.objects.filter(id__in=[task.id for task in tasks]))

    for board_id in board_ids:
        broadcast_board_event(board_id, 'board_refresh', {'reason': 'bulk_delete'})
    logger.info(f"🗑️ {len(tasks)} tasks deleted by {user.username}")
    return deleted


# === RECURRING SERIES ===

def _series_from(task):
    """The task and every later, still open occurrence of its series"""
    if task.recurrence_series_id is None:
        return Task.objects.filter(id=task.id)

    later = Task.objects.filter(recurrence_series_id=task.recurrence_series_id)
    if task.due_date is not None:
        later = later.filter(due_date__gte=task.due_date)
    later = later.exclude(status__in=task.board.terminal_statuses())
    return Task.objects.filter(id=task.id) | later


def update_recurring_series(task, user, **changes):
    """Applies changes to the task and every later open occurrence of its series"""
    check_board_access(user, task.board)

    unknown = set(changes) - set(SERIES_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be changed on a series: {sorted(unknown)}")

    if 'recurring_config' in changes:
        changes['recurring_config'] = capture_day_of_month(
            parse_recurring_config(changes['recurring_config']), task.due_date
        )
    if changes.get('section') and changes['section'] not in task.board.section_ids():
        raise ValidationError(f"Unknown section '{changes['section']}'")

    with transaction.atomic():
        updated = _series_from(task).update(updated_at=timezone.now(), **changes)

    broadcast_board_event(task.board_id, 'board_refresh', {'reason': 'series_update'})
    return updated


def delete_recurring_series(task, user):
    """Deletes every occurrence of the task's series"""
    check_board_access(user, task.board)

    with transaction.atomic():
        if task.recurrence_series_id is None:
            deleted = _delete_tasks(Task.objects.filter(id=task.id))
        else:
            deleted = _delete_tasks(Task.objects.filter(recurrence_series_id=task.recurrence_series_id))

    broadcast_board_event(task.board_id, 'board_refresh', {'reason': 'series_delete'})
    return deleted


def delete_future_recurring_tasks(task, user):
    """
    Ends a series at this task

    Deletes the task and every later occurrence, and removes the
    recurring config from the remaining ones so nothing spawns again.
    """
    check_board_access(user, task.board)

    with transaction.atomic():
        if task.recurrence_series_id is None:
            deleted = _delete_tasks(Task.objects.filter(id=task.id))
        else:
            series = Task.objects.filter(recurrence_series_id=task.recurrence_series_id)
            future = series.filter(id=task.id)
            if task.due_date is not None:
                future = future | series.filter(due_date__gte=task.due_date)
            deleted = _delete_tasks(Task.objects.filter(id__in=list(future.values_list('id', flat=True))))
            series.update(recurring_config=None, updated_at=timezone.now())

    broadcast_board_event(task.board_id, 'board_refresh', {'reason': 'series_end'})
    return deleted
