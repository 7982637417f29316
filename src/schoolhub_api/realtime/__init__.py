"""Real-time notification delivery over WebSockets."""
