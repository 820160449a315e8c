# apps/core/management/commands/seed.py

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from apps.board_templates import services as template_services
from apps.core.models import Board, Client, Task, User


class Command(BaseCommand):
    help = 'Creates a demo company with a board, recurring tasks and a template'

    def add_arguments(self, parser):
        parser.add_argument('--company', default='Demo Company')
        parser.add_argument('--password', default='demo12345')

    def handle(self, *args, **options):
        company = options['company']

        if User.objects.filter(company=company).exists():
            raise CommandError(f"Company '{company}' already has data, choose another --company")

        self.stdout.write(f'🌱 Seeding {company}...')

        with transaction.atomic():
            admin, member = self._create_users(company, options['password'])
            board = self._create_board(company, admin, member)
            self._create_tasks(board, admin, member)
            capture = template_services.create_template_from_board(
                board, admin, 'Monthly close', description='Snapshot of the demo board'
            )

        self.stdout.write(
            self.style.SUCCESS(
                '\n✅ Demo data created!\n'
                f'  👤 Users: {admin.username} (admin), {member.username} (member)\n'
                f'  📋 Board: {board.name} with {board.tasks.count()} tasks\n'
                f'  🧩 Template: {capture.template.name} ({capture.tasks_captured} tasks)\n'
            )
        )

    def _create_users(self, company, password):
        self.stdout.write('  👤 Creating users...')
        slug = company.lower().replace(' ', '-')

        admin = User.objects.create_user(
            username=f'{slug}-admin',
            email=f'admin@{slug}.example.com',
            password=password,
            first_name='Ada',
            company=company,
            role='admin',
        )
        member = User.objects.create_user(
            username=f'{slug}-member',
            email=f'member@{slug}.example.com',
            password=password,
            first_name='Grace',
            company=company,
            role='member',
        )
        return admin, member

    def _create_board(self, company, admin, member):
        self.stdout.write('  📋 Creating board...')
        client = Client.objects.create(company=company, name='Acme Corp', color='#3B82F6', created_by=admin)

        board = Board.objects.create(
            company=company,
            client=client,
            name='Bookkeeping',
            section_options=[
                {'id': 'payroll', 'label': 'Payroll', 'color': '#8B5CF6', 'position': 0},
                {'id': 'taxes', 'label': 'Taxes', 'color': '#EF4444', 'position': 1},
            ],
            created_by=admin,
        )
        board.members.add(admin, member)
        return board

    def _create_tasks(self, board, admin, member):
        self.stdout.write('  🔁 Creating tasks...')
        today = timezone.localdate()
        status = board.default_status()

        specs = [
            ('Run payroll', 'payroll', 3, {'frequency': 'biweekly', 'interval': 1, 'daysOfWeek': [5]}),
            ('Sales tax filing', 'taxes', 10, {
                'frequency': 'monthly', 'interval': 1, 'monthlyPattern': 'dayOfMonth', 'dayOfMonth': 20,
            }),
            ('Quarterly estimate', 'taxes', 30, {
                'frequency': 'quarterly', 'interval': 1, 'monthlyPattern': 'dayOfWeek',
                'weekOfMonth': -1, 'monthlyDayOfWeek': 2,
            }),
            ('Archive receipts', None, 7, None),
        ]

        for index, (title, section, days, config) in enumerate(specs):
            task = Task.objects.create(
                board=board,
                title=title,
                status=status,
                section=section,
                due_date=today + timedelta(days=days),
                recurring_config=config,
                position=index * 1000,
                created_by=admin,
            )
            task.assignees.add(member)

            if title == 'Run payroll':
                for sub_index, subtitle in enumerate(['Collect timesheets', 'Approve payroll']):
                    Task.objects.create(
                        board=board,
                        parent=task,
                        title=subtitle,
                        status=status,
                        due_date=today + timedelta(days=days - 1),
                        position=sub_index * 1000,
                        created_by=admin,
                    )
