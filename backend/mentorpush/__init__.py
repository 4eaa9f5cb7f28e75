"""Push notification delivery, local history and multi-device registry."""
