from django.urls import path

from scheduling.realtime.consumers import ScheduleConsumer

websocket_urlpatterns = [
    path("ws/schedule/", ScheduleConsumer.as_asgi()),
]
