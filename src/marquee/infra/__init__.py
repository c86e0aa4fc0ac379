"""Infrastructure: settings, logging and the exception hierarchy."""
