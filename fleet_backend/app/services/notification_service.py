"""
Email notification service.

Notifications are fire-and-forget: a failed send is logged and swallowed and
never fails the operation that triggered it.
"""

import logging
import smtplib
from email.message import EmailMessage
from starlette.concurrency import run_in_threadpool

from fleet_backend.app.core.clock import as_utc
from fleet_backend.app.core.config import settings

logger = logging.getLogger("fleet")


class EmailNotifier:
    """Sends plain-text messages. Subclasses implement deliver()."""

    async def deliver(self, to_address: str, subject: str, body: str) -> None:
        raise NotImplementedError

    async def send(self, to_address: str, subject: str, body: str) -> bool:
        """Deliver a message; returns False instead of raising on failure."""
        if not to_address:
            logger.warning("Notification skipped, no recipient", extra={"subject": subject})
            return False
        try:
            await self.deliver(to_address, subject, body)
        except Exception:
            logger.exception("Notification delivery failed", extra={"to": to_address, "subject": subject})
            return False
        return True

    async def notify_trip_booked(self, driver, trip, vehicle=None) -> bool:
        """Tell the driver about a new booking."""
        pickup = as_utc(trip.scheduled_pickup_time)
        lines = [
            f"Hello {driver.first_name},",
            "",
            "You have been assigned a new trip.",
            f"Passenger: {trip.passenger_name}",
            f"Pickup: {trip.pickup_location}",
            f"Destination: {trip.destination}",
            f"Pickup time: {pickup.strftime('%Y-%m-%d %H:%M UTC')}",
        ]
        if vehicle is not None:
            lines.append(f"Vehicle: {vehicle.registration} ({vehicle.make} {vehicle.model})")
        if trip.purpose:
            lines.append(f"Purpose: {trip.purpose}")
        return await self.send(driver.email, f"New trip booking #{trip.id}", "\n".join(lines))


class LoggingNotifier(EmailNotifier):
    """Used when notifications are disabled: records the message in the log only."""

    async def deliver(self, to_address: str, subject: str, body: str) -> None:
        logger.info("Notification (not sent, notifications disabled)", extra={"to": to_address, "subject": subject})


class SmtpNotifier(EmailNotifier):
    """Delivers through SMTP in the threadpool so the event loop is not blocked."""

    def __init__(
        self,
        host: str = None,
        port: int = None,
        username: str = None,
        password: str = None,
        use_tls: bool = None,
        timeout: int = None,
        sender: str = None,
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.timeout = timeout or settings.smtp_timeout_seconds
        self.sender = sender or settings.email_from

    def _send_sync(self, message: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
            if self.use_tls:
                client.starttls()
            if self.username:
                client.login(self.username, self.password or "")
            client.send_message(message)

    async def deliver(self, to_address: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)
        await run_in_threadpool(self._send_sync, message)


def get_notifier() -> EmailNotifier:
    """FastAPI dependency returning the configured notifier."""
    if settings.notifications_enabled:
        return SmtpNotifier()
    return LoggingNotifier()
