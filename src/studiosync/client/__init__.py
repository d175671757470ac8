"""Client module - Studio transport, credentials, git adapter and sync."""
