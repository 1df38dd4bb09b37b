"""Front-end adapters: shared request handler, cloud function and web server."""
