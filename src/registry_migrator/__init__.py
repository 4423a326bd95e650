"""Migration of APM registry packages onto a new registry contract."""
