"""
Logging Configuration for TPM Seal Policy.

Provides centralized logging setup with a verbose toggle, per-feature
tagging derived from logger names, and text or JSON line formatting.

Usage:
    from tpmseal.logging_config import setup_logging

    # Setup once at program start
    setup_logging(verbose=True)

    # Modules keep using the standard pattern
    logger = logging.getLogger(__name__)
"""

import os
import sys
import json
import logging
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Optional


# =============================================================================
# FEATURE AREAS
# =============================================================================

class FeatureArea(Enum):
    """Feature areas used to tag log lines."""
    CORE = auto()           # Package-level operations
    READER = auto()         # Bank discovery and chunked PCR reads
    POLICY = auto()         # Sealing policy resolution
    CERTIFY = auto()        # Certification and subset checks
    DEVICE = auto()         # TPM backends
    CONFIG = auto()         # Policy files and persisted PCR sets
    CLI = auto()            # Command-line front end


# Logger-name fragment -> feature area, first match wins
_FEATURE_MAP = (
    ('policy_config', FeatureArea.CONFIG),
    ('config', FeatureArea.CONFIG),
    ('cli', FeatureArea.CLI),
    ('subset', FeatureArea.CERTIFY),
    ('policy', FeatureArea.POLICY),
    ('pcr', FeatureArea.READER),
    ('device', FeatureArea.DEVICE),
    ('backends', FeatureArea.DEVICE),
)


def feature_for(logger_name: str) -> FeatureArea:
    """Map a logger name to its feature area."""
    name_lower = logger_name.lower()
    for key, feature in _FEATURE_MAP:
        if key in name_lower:
            return feature
    return FeatureArea.CORE


# =============================================================================
# CUSTOM FORMATTER
# =============================================================================

class SealFormatter(logging.Formatter):
    """Formatter with color support and optional JSON output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stderr.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        feature_str = f"[{feature_for(record.name).name.lower()}]"
        msg = record.getMessage()

        line = f"{timestamp} {level_str} {feature_str:12} {msg}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line

    def _format_json(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'feature': feature_for(record.name).name.lower(),
        }

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data)


# =============================================================================
# SETUP AND CONFIGURATION
# =============================================================================

def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Console output goes to stderr so command output on stdout stays
    machine-readable.

    Args:
        verbose: Enable DEBUG level
        log_file: Optional file path for log output
        console: Enable console output
        json_format: Use JSON format for logs
    """
    base_level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(base_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(base_level)
        console_handler.setFormatter(SealFormatter(
            use_colors=True,
            json_format=json_format
        ))
        root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(base_level)
        file_handler.setFormatter(SealFormatter(
            use_colors=False,
            json_format=json_format
        ))
        root.addHandler(file_handler)


def configure_from_environment(verbose: bool = False) -> None:
    """Configure logging from TPMSEAL_* environment variables."""
    verbose = verbose or os.environ.get('TPMSEAL_VERBOSE', '').lower() in ('1', 'true', 'yes')
    log_file = os.environ.get('TPMSEAL_LOG_FILE')
    json_format = os.environ.get('TPMSEAL_LOG_JSON', '').lower() in ('1', 'true', 'yes')

    setup_logging(
        verbose=verbose,
        log_file=log_file,
        json_format=json_format,
    )


def short_digest(digest: bytes) -> str:
    """Truncated hex form of a digest, safe for log lines."""
    return digest.hex()[:16] + "..."


__all__ = [
    'FeatureArea',
    'feature_for',
    'SealFormatter',
    'setup_logging',
    'configure_from_environment',
    'short_digest',
]
