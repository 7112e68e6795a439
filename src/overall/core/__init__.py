"""Core components: adapters, cache store, classifier and sync engine."""
