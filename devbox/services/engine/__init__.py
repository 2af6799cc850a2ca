"""Docker engine integration: probing, daemon start-up, lifecycle and maintenance."""
