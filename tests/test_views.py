# tests/test_views.py

import json
from datetime import date

from django.test import TestCase
from django.urls import reverse

from apps.core.models import Board, Task

from .helpers import DAILY, make_board, make_task, make_user


class JsonClientMixin:

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')


class BoardViewTests(JsonClientMixin, TestCase):

    def setUp(self):
        self.user = make_user()
        self.board = make_board(self.user)
        self.client.force_login(self.user)

    def test_login_required(self):
        self.client.logout()

        response = self.client.get(reverse('board:tasks', args=[self.board.id]))

        self.assertEqual(response.status_code, 302)

    def test_board_tasks_grouped_by_column(self):
        parent = make_task(self.board, 'Parent', recurring_config=DAILY, due_date=date(2024, 1, 10))
        make_task(self.board, 'Child', parent=parent)
        make_task(self.board, 'Done', status='complete')

        response = self.client.get(reverse('board:tasks', args=[self.board.id]))

        self.assertEqual(response.status_code, 200)
        columns = {column['id']: column for column in response.json()['columns']}
        self.assertEqual(list(columns), ['todo', 'in-progress', 'review', 'complete'])
        todo = columns['todo']['tasks']
        self.assertEqual([t['title'] for t in todo], ['Parent'])
        self.assertEqual([s['title'] for s in todo[0]['subtasks']], ['Child'])
        self.assertEqual(todo[0]['recurrence_label'], 'Daily')
        self.assertEqual([t['title'] for t in columns['complete']['tasks']], ['Done'])

    def test_board_of_another_member_is_forbidden(self):
        other_board = make_board(make_user())

        response = self.client.get(reverse('board:tasks', args=[other_board.id]))

        self.assertEqual(response.status_code, 403)

    def test_missing_board(self):
        response = self.client.get(reverse('board:tasks', args=[999999]))

        self.assertEqual(response.status_code, 404)

    def test_create_task(self):
        response = self.post_json(reverse('board:create_task', args=[self.board.id]), {
            'title': 'Invoice',
            'due_date': '2024-02-01',
            'recurring_config': {'frequency': 'monthly', 'monthlyPattern': 'dayOfMonth', 'dayOfMonth': 1},
        })

        self.assertEqual(response.status_code, 201)
        task = Task.objects.get(title='Invoice')
        self.assertEqual(task.due_date, date(2024, 2, 1))
        self.assertEqual(task.recurring_config['dayOfMonth'], 1)

    def test_create_task_with_invalid_rule(self):
        response = self.post_json(reverse('board:create_task', args=[self.board.id]), {
            'title': 'Invoice',
            'recurring_config': {'frequency': 'weekly'},
        })

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Task.objects.exists())

    def test_invalid_json_body(self):
        task = make_task(self.board)

        response = self.client.post(
            reverse('board:update_status', args=[task.id]), data='{not json', content_type='application/json'
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_status_is_required(self):
        task = make_task(self.board)

        response = self.post_json(reverse('board:update_status', args=[task.id]), {})

        self.assertEqual(response.status_code, 400)

    def test_get_is_not_allowed_on_moves(self):
        task = make_task(self.board)

        response = self.client.get(reverse('board:move_task', args=[task.id]))

        self.assertEqual(response.status_code, 405)

    def test_move_reorders_column(self):
        a = make_task(self.board, 'A', position=0)
        b = make_task(self.board, 'B', position=1000)

        response = self.post_json(reverse('board:move_task', args=[b.id]), {
            'to_status': 'todo', 'ordered_ids': [b.id, a.id],
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['state'], 'reordered')
        self.assertEqual(list(Task.objects.values_list('title', flat=True)), ['B', 'A'])

    def test_move_with_open_subtasks_answers_conflict(self):
        parent = make_task(self.board, 'Parent')
        make_task(self.board, 'Child', parent=parent)

        response = self.post_json(reverse('board:move_task', args=[parent.id]), {
            'to_status': 'complete', 'ordered_ids': [parent.id],
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['state'], 'pending_confirmation')
        self.assertEqual(response.json()['incomplete_subtasks'], 1)

        response = self.post_json(reverse('board:move_task', args=[parent.id]), {
            'to_status': 'complete', 'ordered_ids': [parent.id], 'complete_subtasks': True,
        })

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Task.objects.exclude(status='complete').exists())

    def test_status_change_returns_next_occurrence(self):
        task = make_task(self.board, due_date=date(2024, 1, 10), recurring_config=DAILY)

        response = self.post_json(reverse('board:update_status', args=[task.id]), {'status': 'complete'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['state'], 'moved')
        self.assertIn('next_occurrence', response.json())

    def test_non_member_cannot_move(self):
        task = make_task(make_board(make_user()))

        response = self.post_json(reverse('board:move_task', args=[task.id]), {'to_status': 'review'})

        self.assertEqual(response.status_code, 403)

    def test_positions_batch(self):
        task = make_task(self.board)

        response = self.post_json(reverse('board:update_positions'), {
            'updates': [{'id': task.id, 'position': 7000, 'status': 'review'}],
        })

        self.assertEqual(response.status_code, 200)
        task.refresh_from_db()
        self.assertEqual((task.status, task.position), ('review', 7000))

    def test_positions_batch_rejects_non_numeric_position(self):
        task = make_task(self.board, position=0)

        response = self.post_json(reverse('board:update_positions'), {
            'updates': [{'id': task.id, 'position': 'abc'}],
        })

        self.assertEqual(response.status_code, 400)
        task.refresh_from_db()
        self.assertEqual(task.position, 0)

    def test_positions_batch_requires_updates(self):
        response = self.post_json(reverse('board:update_positions'), {'updates': []})

        self.assertEqual(response.status_code, 400)

    def test_bulk_delete_missing_task(self):
        task = make_task(self.board)

        response = self.post_json(reverse('board:bulk_delete'), {'task_ids': [task.id, 999999]})

        self.assertEqual(response.status_code, 404)
        self.assertTrue(Task.objects.filter(id=task.id).exists())

    def test_bulk_update(self):
        tasks = [make_task(self.board, f'T{index}', position=index) for index in range(2)]

        response = self.post_json(reverse('board:bulk_update'), {
            'task_ids': [task.id for task in tasks], 'status': 'review',
        })

        self.assertEqual(response.json()['updated'], 2)
        self.assertEqual(Task.objects.filter(status='review').count(), 2)

    def test_delete_series(self):
        task = make_task(self.board, due_date=date(2024, 1, 10), recurring_config=DAILY)

        response = self.post_json(reverse('board:delete_series', args=[task.id]), {})

        self.assertEqual(response.json()['deleted'], 1)


class RecurrencePreviewTests(JsonClientMixin, TestCase):

    def setUp(self):
        self.client.force_login(make_user())
        self.url = reverse('board:recurrence_preview')

    def test_preview_dates(self):
        response = self.post_json(self.url, {
            'config': {'frequency': 'weekly', 'daysOfWeek': [1, 3]},
            'from_date': '2024-01-15',
            'count': 3,
        })

        data = response.json()
        self.assertEqual(data['dates'], ['2024-01-17', '2024-01-22', '2024-01-24'])
        self.assertEqual(data['description'], 'Weekly on Mon, Wed')

    def test_preview_counts_first_occurrence(self):
        response = self.post_json(self.url, {
            'config': {'frequency': 'daily', 'endAfterOccurrences': 3},
            'from_date': '2024-01-15',
            'count': 10,
        })

        self.assertEqual(response.json()['dates'], ['2024-01-16', '2024-01-17'])

    def test_preview_stops_at_end_date(self):
        response = self.post_json(self.url, {
            'config': {'frequency': 'daily', 'endDate': '2024-01-17'},
            'from_date': '2024-01-15',
        })

        self.assertEqual(response.json()['dates'], ['2024-01-16', '2024-01-17'])

    def test_invalid_config(self):
        response = self.post_json(self.url, {'config': {'frequency': 'hourly'}, 'from_date': '2024-01-15'})

        self.assertEqual(response.status_code, 400)

    def test_missing_from_date(self):
        response = self.post_json(self.url, {'config': {'frequency': 'daily'}})

        self.assertEqual(response.status_code, 400)


class CoreViewTests(JsonClientMixin, TestCase):

    def test_health_check(self):
        response = self.client.get(reverse('core:health'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    def test_tenant_headers(self):
        user = make_user(company='Initech', role='manager')
        self.client.force_login(user)

        response = self.client.get(reverse('core:boards'))

        self.assertEqual(response['X-Tenant'], 'Initech')
        self.assertEqual(response['X-User-Role'], 'manager')

    def test_boards_are_isolated_by_company(self):
        user = make_user()
        make_board(user, name='Mine')
        make_board(make_user(company='Globex'), name='Theirs')
        self.client.force_login(user)

        response = self.client.get(reverse('core:boards'))

        self.assertEqual([board['name'] for board in response.json()['boards']], ['Mine'])

    def test_members_cannot_create_boards(self):
        self.client.force_login(make_user())

        response = self.post_json(reverse('core:boards'), {'name': 'New'})

        self.assertEqual(response.status_code, 403)

    def test_new_board_gets_default_statuses(self):
        self.client.force_login(make_user(role='manager'))

        response = self.post_json(reverse('core:boards'), {'name': 'New'})

        self.assertEqual(response.status_code, 201)
        board = Board.objects.get(name='New')
        self.assertEqual(board.default_status(), 'todo')
        self.assertEqual(board.terminal_statuses(), {'complete'})


class TemplateViewTests(JsonClientMixin, TestCase):

    def setUp(self):
        self.user = make_user(role='manager')
        self.client.force_login(self.user)

    def test_template_round_trip_through_views(self):
        response = self.post_json(reverse('board_templates:templates'), {'name': 'Close'})
        self.assertEqual(response.status_code, 201)
        template_id = response.json()['template']['id']

        response = self.post_json(reverse('board_templates:add_task', args=[template_id]), {
            'title': 'Reconcile', 'relative_due_days': 2,
        })
        self.assertEqual(response.status_code, 201)

        response = self.post_json(reverse('board_templates:create_board', args=[template_id]), {
            'name': 'March', 'anchor_date': '2024-03-01',
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['tasks_created'], 1)
        self.assertEqual(response.json()['cap'], 200)
        board = Board.objects.get(id=response.json()['board_id'])
        self.assertEqual(board.tasks.get().due_date, date(2024, 3, 3))

    def test_capture_board(self):
        board = make_board(self.user)
        make_task(board)

        response = self.post_json(reverse('board_templates:capture_board', args=[board.id]), {'name': 'Snap'})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['tasks_captured'], 1)

    def test_template_of_other_company_is_hidden(self):
        stranger = make_user(company='Globex', role='manager')
        self.client.force_login(stranger)
        response = self.post_json(reverse('board_templates:templates'), {'name': 'Secret'})
        template_id = response.json()['template']['id']

        self.client.force_login(self.user)
        response = self.client.get(reverse('board_templates:detail', args=[template_id]))

        self.assertEqual(response.status_code, 404)
