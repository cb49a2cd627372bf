"""Runs behave features against a browser-automation session."""
