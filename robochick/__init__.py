"""robochick: Twitch EventSub reward-redemption relay to StreamElements chat."""

__version__ = "0.1.0"
