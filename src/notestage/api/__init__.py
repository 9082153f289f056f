"""HTTP API for the preview server."""
