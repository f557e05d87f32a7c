"""HTTP API for triggering scrapes."""
