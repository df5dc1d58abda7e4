"""Runtime configuration for the contact relay backend."""
