# apps/core/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count
from django.utils import timezone
from django.utils.html import format_html

from apps.board.recurrence import label

from .models import Board, BoardTemplate, Client, Task, TemplateTask, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for the custom user model"""

    list_display = [
        'username', 'email', 'get_full_name', 'company', 'role_badge',
        'is_active', 'date_joined'
    ]
    list_filter = ['role', 'company', 'is_staff', 'is_active']
    search_fields = ['username', 'first_name', 'last_name', 'email', 'company']
    ordering = ['-date_joined']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Tenant', {
            'fields': ('company', 'role')
        }),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Tenant', {
            'fields': ('company', 'role')
        }),
    )

    def role_badge(self, obj):
        colors = {
            'admin': '#EF4444',
            'manager': '#F59E0B',
            'member': '#3B82F6'
        }
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
            colors.get(obj.role, '#6B7280'), obj.get_role_display()
        )

    role_badge.short_description = 'Role'


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'color_preview', 'boards_count', 'created_at']
    list_filter = ['company']
    search_fields = ['name', 'company']
    prepopulated_fields = {'slug': ('name',)}

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(total_boards=Count('boards'))

    def boards_count(self, obj):
        return obj.total_boards

    boards_count.short_description = 'Boards'

    def color_preview(self, obj):
        return format_html(
            '<span style="display:inline-block;width:14px;height:14px;'
            'border-radius:3px;background-color:{};"></span>',
            obj.color
        )

    color_preview.short_description = 'Color'


class SubtaskInline(admin.TabularInline):
    model = Task
    fk_name = 'parent'
    fields = ['board', 'title', 'status', 'due_date', 'position']
    extra = 0
    show_change_link = True


@admin.register(Board)
class BoardAdmin(admin.ModelAdmin):
    list_display = ['name', 'client', 'company', 'statuses', 'tasks_count', 'created_at']
    list_filter = ['company', 'created_at']
    search_fields = ['name', 'client__name']
    filter_horizontal = ['members']
    readonly_fields = ['created_at']

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(total_tasks=Count('tasks'))

    def statuses(self, obj):
        return ', '.join(option.get('label', option['id']) for option in obj.get_status_options())

    def tasks_count(self, obj):
        return obj.total_tasks

    tasks_count.short_description = 'Tasks'


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = [
        'title', 'board', 'status', 'section', 'due_date_status',
        'recurrence', 'position', 'parent'
    ]
    list_filter = ['board__company', 'status', 'due_date']
    search_fields = ['title', 'description', 'board__name']
    raw_id_fields = ['board', 'parent', 'created_by']
    filter_horizontal = ['assignees']
    readonly_fields = ['recurrence_series_id', 'created_at', 'updated_at']
    inlines = [SubtaskInline]

    fieldsets = (
        ('Task', {
            'fields': ('board', 'parent', 'title', 'description', 'status', 'section', 'position')
        }),
        ('Schedule', {
            'fields': ('due_date', 'recurring_config', 'recurrence_series_id')
        }),
        ('People', {
            'fields': ('assignees', 'created_by')
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at', 'archived_at'),
            'classes': ('collapse',)
        })
    )

    def recurrence(self, obj):
        if not obj.recurring_config:
            return '-'
        return label(obj.recurring_config)

    def due_date_status(self, obj):
        """Due date colored by urgency"""
        if not obj.due_date:
            return '-'

        if obj.is_complete:
            return format_html('<span style="color: green;">✓ {}</span>', obj.due_date)

        days_left = (obj.due_date - timezone.localdate()).days
        if days_left < 0:
            return format_html('<span style="color: red;">⚠️ {}</span>', obj.due_date)
        if days_left <= 1:
            return format_html('<span style="color: orange;">⏰ {}</span>', obj.due_date)
        return obj.due_date

    due_date_status.short_description = 'Due date'


class TemplateTaskInline(admin.TabularInline):
    model = TemplateTask
    fields = ['title', 'status', 'section', 'relative_due_days', 'position', 'parent']
    extra = 0


@admin.register(BoardTemplate)
class BoardTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'created_by', 'tasks_count', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [TemplateTaskInline]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(total_tasks=Count('tasks'))

    def tasks_count(self, obj):
        return obj.total_tasks

    tasks_count.short_description = 'Tasks'


# Admin titles
admin.site.site_header = 'Taskboard Admin'
admin.site.site_title = 'Taskboard'
admin.site.index_title = 'System administration'
