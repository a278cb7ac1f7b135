"""
Core app configuration.

Creates the process-wide ``NotificationPublisher`` once the app registry
is ready; services reach it through ``core.domain.notifications.get_publisher``.
"""

import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Core"

    publisher = None

    def ready(self) -> None:
        from core.domain.notifications import ChannelRegistry, NotificationPublisher

        self.publisher = NotificationPublisher(ChannelRegistry())
        logger.debug("Notification publisher initialised")
