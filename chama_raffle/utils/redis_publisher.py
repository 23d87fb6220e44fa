"""
Redis Publisher for Raffle Events
Publishes winner announcements to Redis channels for the portal's mailer
"""

import json
import logging

import redis

from ..config import RAFFLE_NOTIFY_CHANNEL, REDIS_URL

logger = logging.getLogger(__name__)


class RaffleRedisPublisher:
    def __init__(self, redis_url=None, channel=None, client=None):
        """
        Args:
            redis_url: Redis connection URL (defaults to REDIS_URL)
            channel: Channel for winner announcements (defaults to RAFFLE_NOTIFY_CHANNEL)
            client: Pre-built redis client (skips connecting)
        """
        self.channel = channel or RAFFLE_NOTIFY_CHANNEL
        self.client = client
        self.enabled = client is not None

        if client is not None:
            return

        redis_url = redis_url or REDIS_URL
        if redis_url:
            if '://' not in redis_url:
                redis_url = f'redis://{redis_url}'
            try:
                self.client = redis.from_url(redis_url, decode_responses=True)
                self.client.ping()
                self.enabled = True
                logger.info("✅ Raffle Redis publisher connected")
            except redis.RedisError as e:
                logger.warning(f"⚠️ Redis unavailable for raffle publisher: {e}")
                self.enabled = False
        else:
            logger.warning("⚠️ REDIS_URL not set, raffle events will not be published")

    def publish(self, channel, action, data=None):
        """Publish an event to a Redis channel"""
        if not self.enabled:
            return False

        try:
            message = json.dumps({
                'action': action,
                'data': data or {}
            })
            self.client.publish(channel, message)
            logger.info(f"📤 Published to {channel}: {action}")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Failed to publish to {channel}: {e}")
            return False

    def send_winners_announcement(self, recipients, month, year, winners):
        """
        Announce a draw to every recipient

        Args:
            recipients: Members (or dicts with name/email) to notify
            month: Month name, e.g. 'October'
            year: Calendar year
            winners: List of {'name', 'position'} dicts

        Returns:
            bool: True if the event was published
        """
        return self.publish(self.channel, 'winners_announced', {
            'subject': f"Raffle Winners Announcement - {month} {year}",
            'month': month,
            'year': year,
            'recipients': [_recipient(r) for r in recipients],
            'winners': [{'name': w['name'], 'position': w['position']} for w in winners],
        })


def _recipient(member):
    if isinstance(member, dict):
        return {'name': member.get('name', ''), 'email': member.get('email', '')}
    return {'name': member.name, 'email': member.email}
