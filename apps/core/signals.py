# apps/core/signals.py

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Board

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Board)
def create_default_statuses(sender, instance, created, **kwargs):
    """
    Gives a new board the default status columns
    ONLY when it was created without any (templates bring their own)
    """
    if created and not instance.status_options:
        instance.create_default_statuses()
        logger.debug(f"Default statuses created for board {instance.pk}")
