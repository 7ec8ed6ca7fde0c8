"""Event-socket collectors and the metric catalog."""
