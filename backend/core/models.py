"""
Shared abstract models.
"""

from django.db import models


class TimeStampedModel(models.Model):
    """
    Adds ``created_at`` / ``updated_at`` to complaints, their history
    entries, attachments, departments and reviews.

    ``created_at`` is indexed: complaint listings filter on date ranges
    and every history or review listing orders by it.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
