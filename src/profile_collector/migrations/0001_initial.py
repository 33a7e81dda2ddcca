import uuid

from django.db import migrations, models

from profile_collector.conf import table_name


class Migration(migrations.Migration):
    initial = True

    dependencies: list[tuple[str, str]] = []

    operations = [
        migrations.CreateModel(
            name="ProfileResult",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("profile", models.JSONField(blank=True, null=True)),
                ("url", models.TextField(blank=True, null=True)),
                ("simple_url", models.TextField(blank=True, db_index=True, null=True)),
                ("server", models.JSONField(blank=True, default=dict)),
                ("get", models.JSONField(blank=True, default=dict)),
                ("env", models.JSONField(blank=True, default=dict)),
                ("request_ts", models.DateTimeField(db_index=True)),
                ("request_ts_micro", models.DateTimeField()),
                ("request_date", models.CharField(db_index=True, max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": table_name(),
                "ordering": ["-request_ts"],
            },
        ),
    ]
