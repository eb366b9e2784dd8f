"""
Logging configuration.

Development gets human-readable console lines, everything else JSON lines on
stdout so the output can be shipped to a log aggregator as-is.

Environment variables:
- LOG_FORMAT: "json" or "console" (default: console when DEBUG)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
"""
import json
import logging
import os


def get_logging_config(debug: bool = False) -> dict:
    """Build the Django LOGGING dict."""
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    if log_format == "json":
        formatters = {"default": {"()": "bk_project.logging_config.JsonFormatter"}}
    else:
        formatters = {
            "default": {
                "format": "[{asctime}] {levelname} {name} {message}",
                "style": "{",
            },
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
            "null": {
                "class": "logging.NullHandler",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": log_level,
            },
            "django": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            "django.db.backends": {
                "handlers": ["null"],
                "level": "INFO",
                "propagate": False,
            },
            "books_core": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            "celery": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
        },
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)
