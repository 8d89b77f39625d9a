# Generated manually for initial schema.
from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Session",
            fields=[
                ("id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("shop", models.CharField(db_index=True, max_length=255)),
                ("state", models.CharField(blank=True, max_length=255)),
                ("is_online", models.BooleanField(default=False)),
                ("scope", models.TextField(blank=True)),
                ("expires", models.DateTimeField(blank=True, null=True)),
                ("access_token", models.CharField(blank=True, max_length=255)),
                ("user_id", models.BigIntegerField(blank=True, null=True)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("account_owner", models.BooleanField(default=False)),
            ],
            options={"ordering": ["shop", "id"]},
        ),
    ]
