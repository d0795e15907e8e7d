"""dbpulse CLI commands, each exposing register(app)."""
