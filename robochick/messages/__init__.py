"""Message bank loading and randomized message composition."""
