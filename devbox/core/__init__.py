"""Core building blocks: settings, persisted config, errors, planning."""
