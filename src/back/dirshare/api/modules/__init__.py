"""Feature modules for the dirshare API."""
