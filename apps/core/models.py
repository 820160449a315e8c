# apps/core/models.py

import uuid

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Max
from django.utils.text import slugify

from .utils import (
    DEFAULT_STATUS_OPTIONS,
    default_status_id,
    sorted_options,
    terminal_status_ids,
)


class User(AbstractUser):
    """
    Custom user with multi-tenancy support

    Every user belongs to a company (tenant) and can only reach
    clients, boards and tasks of that company.
    """

    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('manager', 'Manager'),
        ('member', 'Member'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='member')

    # === MULTI-TENANCY ===
    company = models.CharField(
        max_length=200,
        help_text="Company (tenant) this user belongs to",
        db_index=True
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user'
        indexes = [
            models.Index(fields=['company', 'role']),
        ]

    @property
    def is_company_admin(self):
        return self.role == 'admin'

    def can_access_board(self, board):
        """
        Business rules for board access:
        1. The board must belong to the user's company
        2. The user must be a board member OR a company admin
        """
        if board.company != self.company:
            return False

        if self.is_company_admin:
            return True

        return board.members.filter(id=self.id).exists()

    def get_accessible_boards(self):
        """Boards the user can open, with tenant isolation applied"""
        boards = Board.objects.filter(company=self.company)
        if self.is_company_admin:
            return boards
        return boards.filter(members=self).distinct()

    def __str__(self):
        full_name = self.get_full_name()
        if full_name:
            return f"{full_name} ({self.company})"
        return f"{self.username} ({self.company})"


class Client(models.Model):
    """Client of a company - groups boards"""

    company = models.CharField(max_length=200, db_index=True)
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    color = models.CharField(max_length=7, default='#6B7280')
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='clients_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'client'
        ordering = ['name']
        unique_together = ['company', 'slug']

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.company})"


class Board(models.Model):
    """Kanban board with its own status and section options"""

    company = models.CharField(max_length=200, db_index=True)
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='boards'
    )
    name = models.CharField(max_length=255)
    status_options = models.JSONField(default=list, blank=True)
    section_options = models.JSONField(default=list, blank=True)
    members = models.ManyToManyField(
        User,
        blank=True,
        related_name='boards'
    )
    color = models.CharField(max_length=7, blank=True)
    icon = models.CharField(max_length=100, blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='boards_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'board'
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if self.client_id and not self.company:
            self.company = self.client.company
        super().save(*args, **kwargs)

    def create_default_statuses(self):
        """Fills the board with the default status columns"""
        self.status_options = [dict(option) for option in DEFAULT_STATUS_OPTIONS]
        self.save(update_fields=['status_options'])

    def get_status_options(self):
        return sorted_options(self.status_options)

    def get_section_options(self):
        return sorted_options(self.section_options)

    def status_ids(self):
        return {option['id'] for option in self.status_options or []}

    def section_ids(self):
        return {option['id'] for option in self.section_options or []}

    def default_status(self):
        """First status by position - where new and respawned tasks land"""
        return default_status_id(self.status_options)

    def terminal_statuses(self):
        return terminal_status_ids(self.status_options)

    def is_terminal_status(self, status_id):
        return status_id in self.terminal_statuses()

    def max_top_level_position(self, status=None):
        tasks = self.tasks.filter(parent__isnull=True)
        if status is not None:
            tasks = tasks.filter(status=status)
        return tasks.aggregate(max_position=Max('position'))['max_position']


class Task(models.Model):
    """Task of a board, optionally recurring, optionally a subtask"""

    board = models.ForeignKey(
        Board,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    title = models.CharField(max_length=500)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=100)
    section = models.CharField(max_length=100, null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)

    # === RECURRENCE ===
    recurring_config = models.JSONField(null=True, blank=True)
    recurrence_series_id = models.UUIDField(null=True, blank=True, db_index=True)

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='subtasks'
    )
    position = models.IntegerField(default=0)
    assignees = models.ManyToManyField(
        User,
        blank=True,
        related_name='assigned_tasks'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'task'
        ordering = ['position', 'id']
        indexes = [
            models.Index(fields=['board', 'status', 'position']),
            models.Index(fields=['parent', 'position']),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        """A subtask can neither have subtasks nor recur"""
        if self.parent_id:
            if self.parent.parent_id:
                raise ValidationError("Cannot create subtasks of subtasks")
            if self.recurring_config:
                raise ValidationError("Subtasks cannot have recurring configuration")
            if self.parent.board_id != self.board_id:
                raise ValidationError("Subtask must live on the parent's board")

        if self.status and self.board_id and self.status not in self.board.status_ids():
            raise ValidationError(f"Unknown status '{self.status}' for board {self.board.name}")

    @property
    def is_recurring(self):
        return bool(self.recurring_config)

    @property
    def is_complete(self):
        return self.board.is_terminal_status(self.status)

    def incomplete_subtasks(self):
        return self.subtasks.exclude(status__in=self.board.terminal_statuses())

    def ensure_series_id(self):
        """Gives the task its recurrence series id, creating one for a first occurrence"""
        if self.recurrence_series_id is None:
            self.recurrence_series_id = uuid.uuid4()
            Task.objects.filter(pk=self.pk).update(recurrence_series_id=self.recurrence_series_id)
        return self.recurrence_series_id


class BoardTemplate(models.Model):
    """Reusable board configuration and task graph"""

    TYPE_CHOICES = [
        ('board_template', 'Board template'),
        ('task_list', 'Task list'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='board_template')
    icon = models.CharField(max_length=100, blank=True)
    color = models.CharField(max_length=7, blank=True)
    status_options = models.JSONField(default=list, blank=True)
    section_options = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='templates_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'board_template'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"

    @property
    def is_task_list(self):
        return self.type == 'task_list'


class TemplateTask(models.Model):
    """Task inside a template, with a due date relative to the anchor date"""

    template = models.ForeignKey(
        BoardTemplate,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    title = models.CharField(max_length=500)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=100, null=True, blank=True)
    section = models.CharField(max_length=100, null=True, blank=True)
    relative_due_days = models.IntegerField(null=True, blank=True)
    recurring_config = models.JSONField(null=True, blank=True)
    position = models.IntegerField(default=0)
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='subtasks'
    )

    class Meta:
        db_table = 'template_task'
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.title} - {self.template.name}"

    def clean(self):
        if self.parent_id:
            if self.parent.parent_id:
                raise ValidationError("Cannot create subtasks of subtasks")
            if self.parent.template_id != self.template_id:
                raise ValidationError("Parent task belongs to another template")
