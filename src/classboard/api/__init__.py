"""HTTP and WebSocket API for Classboard."""
