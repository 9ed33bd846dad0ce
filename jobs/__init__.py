"""Background jobs: health endpoint of the processing tier."""
