"""Background jobs: dramatiq broker, actors and async runner."""
