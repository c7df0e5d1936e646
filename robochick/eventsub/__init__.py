"""Twitch EventSub webhook transport: signature gate, payloads, dispatch."""
