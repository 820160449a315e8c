# apps/board/consumers.py

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.db.models import Count
from django.utils import timezone

from apps.core.models import Board
from apps.core.permissions import BoardPermissions

logger = logging.getLogger(__name__)


class BoardConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for real time updates of a kanban board

    Relays the events broadcast by apps.board.services:
    - task_moved / task_created
    - tasks_updated (positions)
    - board_refresh (bulk and series operations)
    """

    async def connect(self):
        """
        Joins the board group
        Checks permissions before accepting the connection
        """
        self.board_id = self.scope['url_route']['kwargs']['board_id']
        self.board_group_name = f'board_{self.board_id}'
        self.user = self.scope['user']

        if not self.user.is_authenticated:
            logger.warning("❌ WebSocket rejected - user not authenticated")
            await self.close()
            return

        has_access = await self.check_board_access()
        if not has_access:
            logger.warning(f"❌ WebSocket rejected - {self.user.username} has no access to board {self.board_id}")
            await self.close()
            return

        await self.channel_layer.group_add(
            self.board_group_name,
            self.channel_name
        )

        await self.accept()

        await self.channel_layer.group_send(
            self.board_group_name,
            {
                'type': 'user_joined',
                'message': {
                    'user': self.user.get_full_name() or self.user.username,
                    'user_id': self.user.id,
                    'timestamp': timezone.now().isoformat()
                }
            }
        )

        logger.info(f"✅ WebSocket connected - {self.user.username} on board {self.board_id}")

    async def disconnect(self, close_code):
        if hasattr(self, 'board_group_name') and self.user.is_authenticated:
            await self.channel_layer.group_send(
                self.board_group_name,
                {
                    'type': 'user_left',
                    'message': {
                        'user': self.user.get_full_name() or self.user.username,
                        'user_id': self.user.id,
                        'timestamp': timezone.now().isoformat()
                    }
                }
            )

            await self.channel_layer.group_discard(
                self.board_group_name,
                self.channel_name
            )

        logger.info(f"🔌 WebSocket disconnected from board {getattr(self, 'board_id', '?')}")

    async def receive(self, text_data):
        """
        Messages from the client: ping and sync_board
        """
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.error(f"❌ Invalid JSON received from {self.user.username}")
            return

        message_type = data.get('type')

        if message_type == 'ping':
            await self.send(text_data=json.dumps({
                'type': 'pong',
                'timestamp': timezone.now().isoformat()
            }))

        elif message_type == 'sync_board':
            board_data = await self.get_board_state()
            await self.send(text_data=json.dumps({
                'type': 'board_sync',
                'board_data': board_data,
                'timestamp': timezone.now().isoformat()
            }))

    # === Event handlers ===

    async def task_moved(self, event):
        await self.forward('task_moved', event)

    async def task_created(self, event):
        await self.forward('task_created', event)

    async def tasks_updated(self, event):
        await self.forward('tasks_updated', event)

    async def board_refresh(self, event):
        """Forces a full refresh (bulk and series changes)"""
        await self.forward('board_refresh', event)

    async def user_joined(self, event):
        # Not sent back to the user who joined
        if event['message']['user_id'] != self.user.id:
            await self.forward('user_joined', event)

    async def user_left(self, event):
        if event['message']['user_id'] != self.user.id:
            await self.forward('user_left', event)

    async def forward(self, event_type, event):
        await self.send(text_data=json.dumps({
            'type': event_type,
            'message': event['message']
        }))

    # === Helpers ===

    @database_sync_to_async
    def check_board_access(self):
        try:
            board = Board.objects.get(id=self.board_id)
        except Board.DoesNotExist:
            return False
        return BoardPermissions.can_access_board(self.user, board)

    @database_sync_to_async
    def get_board_state(self):
        """Task count per status column, for resynchronisation"""
        board = Board.objects.get(id=self.board_id)

        counts = dict(
            board.tasks.filter(parent__isnull=True, archived_at__isnull=True)
            .order_by()
            .values_list('status')
            .annotate(total=Count('id'))
        )

        return {
            'board_id': board.id,
            'name': board.name,
            'columns': [
                {
                    'id': option['id'],
                    'label': option.get('label'),
                    'color': option.get('color'),
                    'total_tasks': counts.get(option['id'], 0),
                }
                for option in board.get_status_options()
            ]
        }
