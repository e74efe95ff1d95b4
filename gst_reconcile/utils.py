"""
Utility functions for the reconciliation system.

This module contains helper functions that are used across the system but
are not directly related to parsing or reconciling source data.
"""

import os
import pathlib
import logging

logger = logging.getLogger(__name__)

def setup_logging(debug=False, log_level='info'):
    """Configure logging for the application."""
    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Get log file path from environment or use default
    log_file = os.getenv('LOG_FILE', 'debug.log')

    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ],
        force=True
    )

    return log_file

def ensure_directory(dir_type):
    """Ensure a working directory exists under DATA_DIR.

    Args:
        dir_type (str): Type of directory ('output', 'logs', 'data')

    Returns:
        pathlib.Path: Path to the directory

    Raises:
        ValueError: If dir_type is invalid
    """
    valid_dir_types = ['output', 'logs', 'data']
    if dir_type not in valid_dir_types:
        raise ValueError(f"Invalid directory type: {dir_type}. Expected one of: {valid_dir_types}")

    base_dir = os.getenv('DATA_DIR', os.getcwd())
    dir_path = pathlib.Path(base_dir) / dir_type
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path

def resolve_output_directory(output_dir=None):
    """
    Work out where run results are written and create the directory.

    Args:
        output_dir (str or pathlib.Path, optional): Explicit directory. Falls back
            to RECON_OUTPUT_DIR, then to the 'output' directory under DATA_DIR.

    Returns:
        pathlib.Path: Existing output directory
    """
    output_dir = output_dir or os.getenv('RECON_OUTPUT_DIR')
    if not output_dir:
        return ensure_directory('output')

    output_dir = pathlib.Path(output_dir)
    logger.info(f"Creating output directory {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir
