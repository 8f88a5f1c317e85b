"""Channel layer stand-in for exercising the event bus without a broker."""

from channels.exceptions import ChannelFull


class RecordingChannelLayer:
    """
    Records every message sent through it.

    Channels listed in ``full_channels`` reject sends with ChannelFull, like
    a backed-up Redis channel would.
    """

    def __init__(self, full_channels=()):
        self.sent = []
        self.full_channels = set(full_channels)

    async def send(self, channel, message):
        if channel in self.full_channels:
            raise ChannelFull(channel)
        self.sent.append((channel, message))

    def events_for(self, channel):
        return [message["event"] for sent_to, message in self.sent if sent_to == channel]

    def messages_for(self, channel):
        return [message for sent_to, message in self.sent if sent_to == channel]
