"""behave integration: configuration, engine, runner, step registry, reporter and browser wrapper."""
