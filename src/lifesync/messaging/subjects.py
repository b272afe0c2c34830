"""NATS subject constants and builder functions for LifeSync."""


class Subjects:
    """NATS subject definitions for the scheduler service."""

    # Scheduler API (request/reply)
    API_SCHEDULED_TASKS = "lifesync.api.scheduled-tasks"
    API_SCHEDULED_TASK_GET = "lifesync.api.scheduled-tasks.get"
    API_SCHEDULED_TASK_CREATE = "lifesync.api.scheduled-tasks.create"
    API_SCHEDULED_TASK_RUN = "lifesync.api.scheduled-tasks.run"
    API_SCHEDULED_TASK_PAUSE = "lifesync.api.scheduled-tasks.pause"
    API_SCHEDULED_TASK_RESUME = "lifesync.api.scheduled-tasks.resume"
    API_SCHEDULED_TASK_REQUEUE = "lifesync.api.scheduled-tasks.requeue"
    API_PRICE_ALERT_SEND = "lifesync.api.alerts.price.send"

    # External collaborators (request/reply)
    API_REPORT_GENERATE = "lifesync.api.reports.generate"

    # Broadcasts
    BROADCAST_DISPATCH_COMPLETED = "lifesync.broadcast.dispatch_completed"
    BROADCAST_TASK_FAILED = "lifesync.broadcast.task_failed"

    # Delivery gateway, one subject per channel (email, whatsapp)
    @staticmethod
    def gateway_send(channel: str) -> str:
        return f"lifesync.gateway.{channel}.send"
