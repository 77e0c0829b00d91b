"""
Domain exceptions raised by services and translated to HTTP
responses by the handlers registered in app.main.
"""


class NotFoundError(Exception):
    """A requested record does not exist for the caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class PushSubscriptionNotFoundError(NotFoundError):
    def __init__(self, endpoint: str):
        super().__init__("Push subscription not found")
        self.endpoint = endpoint
