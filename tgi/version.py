"""Processing tier version, stored in app_config on every startup."""

VERSION = "1.0.0"
