"""Seed default SLA policies for each priority tier."""

from django.core.management.base import BaseCommand

from tickets.models import SLAPolicy


class Command(BaseCommand):
    help = "Seed default SLA policies (P1-P4)"

    def handle(self, *args, **options):
        policies = [
            {
                "name": "P1 - Critical Priority",
                "priority": "P1",
                "response_time_minutes": 15,
                "restore_time_minutes": 60,
                "escalation_level1_minutes": 30,
                "escalation_level2_minutes": 45,
            },
            {
                "name": "P2 - High Priority",
                "priority": "P2",
                "response_time_minutes": 30,
                "restore_time_minutes": 240,
                "escalation_level1_minutes": 120,
                "escalation_level2_minutes": 180,
            },
            {
                "name": "P3 - Medium Priority",
                "priority": "P3",
                "response_time_minutes": 60,
                "restore_time_minutes": 480,
                "escalation_level1_minutes": 240,
                "escalation_level2_minutes": 360,
            },
            {
                "name": "P4 - Low Priority",
                "priority": "P4",
                "response_time_minutes": 120,
                "restore_time_minutes": 1440,
                "escalation_level1_minutes": 720,
                "escalation_level2_minutes": 1080,
            },
        ]
        for p in policies:
            obj, created = SLAPolicy.objects.update_or_create(
                priority=p["priority"],
                is_active=True,
                defaults=p,
            )
            action = "Created" if created else "Updated"
            self.stdout.write(f"{action}: {obj.name}")
