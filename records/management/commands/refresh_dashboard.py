from django.core.management.base import BaseCommand
from django.utils import timezone
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from records.realtime.consumers import DashboardConsumer
from records.services.dashboard import cached_doctor_dashboard


class Command(BaseCommand):
    help = "Recompute the doctor dashboard cache; broadcast WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        payload = cached_doctor_dashboard(refresh=True)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {
                "type": "broadcast.refresh",
                "version": int(now.timestamp()),
                "ts": now.isoformat(),
                "complete": payload['complete'],
                "stats": payload['stats']['data'],
            }
            async_to_sync(channel_layer.group_send)(DashboardConsumer.GROUP, event)

        if payload['complete']:
            self.stdout.write(self.style.SUCCESS(f"Dashboard refreshed at {now}"))
        else:
            self.stdout.write(self.style.WARNING(f"Dashboard incomplete at {now}, not cached"))
