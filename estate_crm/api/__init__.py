"""HTTP API: app factory, resource gateway and error handling."""
