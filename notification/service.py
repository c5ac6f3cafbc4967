"""
Notification boundary.

The pipeline hands each user's finalized digest to a NotificationSink. Sinks
must not raise for delivery problems they can report; the runner treats a
raised exception as a failed delivery for that user only.
"""
import logging
from abc import ABC, abstractmethod

from notification.message_builder import DigestMessageBuilder, MatchDigest

logger = logging.getLogger(__name__)


def _mask_email(email: str) -> str:
    """
    Mask email address for safe logging (PII protection).

    Shows only domain, e.g., "***@example.com"
    """
    if '@' not in email:
        return "***"
    local, domain = email.rsplit('@', 1)
    return f"***@{domain}"


class NotificationSink(ABC):
    """
    Abstract base class for digest consumers (email sender, queue, webhook).
    """

    @abstractmethod
    def deliver(self, digest: MatchDigest) -> bool:
        """
        Deliver one user's digest.

        Returns:
            True if delivered (or accepted for delivery), False otherwise
        """
        pass


class LoggingNotificationSink(NotificationSink):
    """Logs each digest instead of sending it."""

    def deliver(self, digest: MatchDigest) -> bool:
        recipient = _mask_email(digest.email) if digest.email else digest.user_key
        subject = DigestMessageBuilder.build_subject(digest)
        logger.info(
            f"[run={digest.run_id}] Digest for {recipient}: status={digest.status} "
            f"items={len(digest.items)} subject={subject!r}"
        )
        for item in digest.items:
            logger.info(
                f"[run={digest.run_id}]   {item.score:.3f} [{item.quality_tier}] "
                f"{item.title} @ {item.employer} ({item.location})"
            )
        logger.debug(DigestMessageBuilder.build_body(digest))
        return True
