# tests/test_consumers.py

from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from apps.board.routing import websocket_urlpatterns


class BoardConsumerTests(SimpleTestCase):
    databases = {'default'}

    async def test_anonymous_connection_is_rejected(self):
        communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), '/ws/board/1/')
        communicator.scope['user'] = AnonymousUser()

        connected, _ = await communicator.connect()

        self.assertFalse(connected)
        await communicator.disconnect()
