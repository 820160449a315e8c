# tests/test_templates.py

from datetime import date

from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase, override_settings

from apps.board_templates import services
from apps.core.models import Board, BoardTemplate, Task, TemplateTask

from .helpers import DAILY, make_board, make_task, make_user

ANCHOR = date(2024, 3, 1)

SECTIONS = [
    {'id': 'payroll', 'label': 'Payroll', 'position': 0},
    {'id': 'taxes', 'label': 'Taxes', 'position': 1},
]


class CaptureBoardTests(TestCase):

    def setUp(self):
        self.user = make_user(role='manager')
        self.board = make_board(self.user, section_options=SECTIONS, color='#3B82F6')

    def test_board_becomes_template_with_relative_dates(self):
        parent = make_task(self.board, 'Payroll', section='payroll', position=1000,
                           due_date=date(2024, 3, 11), recurring_config=DAILY)
        make_task(self.board, 'Timesheets', parent=parent, due_date=date(2024, 3, 9))
        make_task(self.board, 'Backlog item', position=0)
        make_task(self.board, 'Shipped', status='complete', position=0)

        capture = services.create_template_from_board(
            self.board, self.user, 'Payroll month', capture_date=ANCHOR
        )

        template = capture.template
        self.assertEqual(capture.tasks_captured, 4)
        self.assertFalse(capture.cap_exceeded)
        self.assertEqual(template.section_options, SECTIONS)
        self.assertEqual(template.color, '#3B82F6')
        self.assertTrue(all('isTerminal' in option for option in template.status_options))

        top_level = list(template.tasks.filter(parent__isnull=True))
        self.assertEqual([t.title for t in top_level], ['Backlog item', 'Payroll', 'Shipped'])
        self.assertEqual([t.position for t in top_level], [0, 1000, 2000])

        payroll = top_level[1]
        self.assertEqual(payroll.relative_due_days, 10)
        self.assertEqual(payroll.recurring_config, DAILY)
        self.assertEqual(payroll.subtasks.get().relative_due_days, 8)

    def test_capture_without_tasks(self):
        make_task(self.board)

        capture = services.create_template_from_board(self.board, self.user, 'Empty', include_tasks=False)

        self.assertEqual(capture.tasks_captured, 0)
        self.assertEqual(capture.template.tasks.count(), 0)

    @override_settings(TASKBOARD_TEMPLATE_TASK_CAP=2)
    def test_board_above_cap_is_captured_without_tasks(self):
        for index in range(3):
            make_task(self.board, f'Task {index}', position=index)

        capture = services.create_template_from_board(self.board, self.user, 'Too big')

        self.assertTrue(capture.cap_exceeded)
        self.assertEqual(capture.template.tasks.count(), 0)
        self.assertTrue(BoardTemplate.objects.filter(name='Too big').exists())

    def test_capture_requires_board_access(self):
        with self.assertRaises(PermissionDenied):
            services.create_template_from_board(self.board, make_user(), 'Nope')


class InstantiateTemplateTests(TestCase):

    def setUp(self):
        self.user = make_user(role='manager')
        self.template = services.create_template(self.user, 'Close', section_options=SECTIONS)
        self.parent = services.add_template_task(
            self.template, self.user, 'Reconcile', section='taxes', relative_due_days=5, recurring_config=DAILY
        )
        services.add_template_task(self.template, self.user, 'Bank statements', parent=self.parent,
                                   relative_due_days=2)
        services.add_template_task(self.template, self.user, 'File', status='review')

    def test_create_board_from_template(self):
        application = services.create_board_from_template(self.template, self.user, 'March close',
                                                          anchor_date=ANCHOR)

        board = application.board
        self.assertEqual(application.tasks, 3)
        self.assertEqual(board.company, self.user.company)
        self.assertTrue(board.members.filter(id=self.user.id).exists())
        self.assertEqual(board.section_ids(), {'payroll', 'taxes'})

        reconcile = board.tasks.get(title='Reconcile')
        self.assertEqual((reconcile.status, reconcile.section), ('todo', 'taxes'))
        self.assertEqual(reconcile.due_date, date(2024, 3, 6))
        self.assertEqual(reconcile.recurring_config, DAILY)

        child = reconcile.subtasks.get()
        self.assertEqual(child.due_date, date(2024, 3, 3))
        self.assertIsNone(child.recurring_config)

        self.assertEqual(board.tasks.get(title='File').status, 'review')

    def test_task_list_cannot_create_board(self):
        task_list = services.create_task_list(self.user, 'Checklist')

        with self.assertRaises(ValidationError):
            services.create_board_from_template(task_list, self.user, 'Nope')

    def test_members_cannot_create_boards(self):
        member = make_user()

        with self.assertRaises(PermissionDenied):
            services.create_board_from_template(self.template, member, 'Nope')

    def test_other_company_cannot_use_template(self):
        stranger = make_user(company='Globex', role='admin')

        with self.assertRaises(PermissionDenied):
            services.create_board_from_template(self.template, stranger, 'Nope')

    def test_apply_to_existing_board_appends_tasks(self):
        board = make_board(self.user, section_options=[{'id': 'tax', 'label': 'Tax', 'position': 0}])
        make_task(board, 'Existing', position=4000)

        application = services.apply_template_to_board(
            self.template, board, self.user,
            status_mapping={'review': 'in-progress'},
            section_mapping={'taxes': 'tax'},
            anchor_date=ANCHOR,
        )

        self.assertEqual(application.tasks, 3)
        self.assertFalse(application.cap_exceeded)
        reconcile = board.tasks.get(title='Reconcile')
        self.assertEqual((reconcile.section, reconcile.position), ('tax', 5000))
        filed = board.tasks.get(title='File')
        self.assertEqual((filed.status, filed.position), ('in-progress', 6000))

    def test_apply_task_list_uses_board_defaults(self):
        task_list = services.create_task_list(self.user, 'Onboarding')
        services.add_template_task(task_list, self.user, 'Send contract', status='review', section='taxes')
        board = make_board(self.user)

        services.apply_template_to_board(task_list, board, self.user, anchor_date=ANCHOR)

        task = board.tasks.get()
        self.assertEqual((task.status, task.section, task.due_date), ('todo', None, None))

    @override_settings(TASKBOARD_TEMPLATE_TASK_CAP=2)
    def test_apply_above_cap_creates_nothing(self):
        board = make_board(self.user)

        application = services.apply_template_to_board(self.template, board, self.user, anchor_date=ANCHOR)

        self.assertTrue(application.cap_exceeded)
        self.assertEqual(application.tasks, 0)
        self.assertFalse(board.tasks.exists())


class TemplateEditingTests(TestCase):

    def setUp(self):
        self.owner = make_user()
        self.template = services.create_template(self.owner, 'Weekly', section_options=SECTIONS)
        self.first = services.add_template_task(self.template, self.owner, 'First')
        self.second = services.add_template_task(self.template, self.owner, 'Second')

    def test_tasks_are_appended(self):
        self.assertEqual((self.first.position, self.second.position), (0, 1000))
        self.assertEqual(self.first.status, 'todo')

    def test_reorder(self):
        services.reorder_template_tasks(self.template, self.owner, [self.second.id, self.first.id])

        self.assertEqual(list(self.template.tasks.values_list('title', flat=True)), ['Second', 'First'])

    def test_reorder_rejects_foreign_ids(self):
        child = services.add_template_task(self.template, self.owner, 'Child', parent=self.first)

        with self.assertRaises(ValidationError):
            services.reorder_template_tasks(self.template, self.owner, [child.id, self.first.id])

    def test_bulk_update(self):
        updated = services.bulk_update_template_tasks(
            self.template, self.owner, [self.first.id, self.second.id], section='taxes', relative_due_days=3
        )

        self.assertEqual(updated, 2)
        self.assertEqual(
            set(self.template.tasks.values_list('section', 'relative_due_days')),
            {('taxes', 3)}
        )

    def test_bulk_update_rejects_unknown_section(self):
        with self.assertRaises(ValidationError):
            services.bulk_update_template_tasks(self.template, self.owner, [self.first.id], section='nope')

    def test_subtask_rules(self):
        child = services.add_template_task(self.template, self.owner, 'Child', parent=self.first)

        with self.assertRaises(ValidationError):
            services.add_template_task(self.template, self.owner, 'Grandchild', parent=child)
        with self.assertRaises(ValidationError):
            services.add_template_task(self.template, self.owner, 'Recurring', parent=self.first,
                                       recurring_config=DAILY)

    def test_only_creator_or_admin_edits(self):
        colleague = make_user()
        admin = make_user(role='admin')

        with self.assertRaises(PermissionDenied):
            services.add_template_task(self.template, colleague, 'Nope')

        services.add_template_task(self.template, admin, 'Allowed')
        services.delete_template(self.template, admin)
        self.assertFalse(TemplateTask.objects.exists())

    def test_admin_of_other_company_cannot_edit(self):
        stranger = make_user(company='Globex', role='admin')

        with self.assertRaises(PermissionDenied):
            services.add_template_task(self.template, stranger, 'Nope')
        with self.assertRaises(PermissionDenied):
            services.delete_template(self.template, stranger)
        self.assertEqual(self.template.tasks.count(), 2)

    def test_deleting_template_keeps_boards(self):
        application = services.create_board_from_template(
            self.template, make_user(role='manager'), 'From weekly', anchor_date=ANCHOR
        )

        services.delete_template(self.template, self.owner)

        self.assertTrue(Board.objects.filter(id=application.board.id).exists())
        self.assertEqual(Task.objects.filter(board=application.board).count(), 2)
