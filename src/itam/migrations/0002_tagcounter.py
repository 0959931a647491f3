"""Per-prefix tag counters; drop the unused license_released action."""

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("itam", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TagCounter",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("prefix", models.CharField(max_length=20, unique=True)),
                ("last_number", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["prefix"],
            },
        ),
        migrations.AlterField(
            model_name="assethistory",
            name="action",
            field=models.CharField(
                choices=[
                    ("created", "Created"),
                    ("updated", "Updated"),
                    ("checked_out", "Checked Out"),
                    ("checked_in", "Checked In"),
                    ("status_changed", "Status Changed"),
                    ("marked_as_broken", "Marked As Broken"),
                    ("sent_for_repair", "Sent For Repair"),
                    ("deleted", "Deleted"),
                    ("replicated", "Replicated"),
                ],
                max_length=30,
            ),
        ),
    ]
