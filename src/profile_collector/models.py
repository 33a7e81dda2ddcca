import uuid

from django.db import models

from .conf import table_name


class ProfileResult(models.Model):
    """One profiled request: the engine's profile plus the request metadata."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    profile = models.JSONField(null=True, blank=True)
    url = models.TextField(null=True, blank=True)
    simple_url = models.TextField(null=True, blank=True, db_index=True)
    server = models.JSONField(default=dict, blank=True)
    get = models.JSONField(default=dict, blank=True)
    env = models.JSONField(default=dict, blank=True)
    request_ts = models.DateTimeField(db_index=True)
    request_ts_micro = models.DateTimeField()
    request_date = models.CharField(max_length=10, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = table_name()
        ordering = ["-request_ts"]

    def __str__(self) -> str:
        return f"{self.simple_url} @ {self.request_ts:%Y-%m-%d %H:%M:%S}"
