"""
Notification Module

Builds the per-user match digest and hands it to a NotificationSink.

Usage:
    from notification import LoggingNotificationSink, build_digest

    digest = build_digest(profile, selected, run_id)
    LoggingNotificationSink().deliver(digest)
"""

from notification.message_builder import (
    DIGEST_STATUS_MATCHES,
    DIGEST_STATUS_NO_ELIGIBLE,
    DigestItem,
    DigestMessageBuilder,
    MatchDigest,
    build_digest,
)

from notification.service import (
    LoggingNotificationSink,
    NotificationSink,
)

__all__ = [
    # Digest
    'DIGEST_STATUS_MATCHES',
    'DIGEST_STATUS_NO_ELIGIBLE',
    'DigestItem',
    'DigestMessageBuilder',
    'MatchDigest',
    'build_digest',
    # Sinks
    'NotificationSink',
    'LoggingNotificationSink',
]
