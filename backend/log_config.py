import logging
import os
from pathlib import Path


def get_app_data_dir() -> str:
    """Directory for runtime data (logs, archive database, history files)"""
    override = os.environ.get('LATEX_GENERATOR_DATA_DIR')
    if override:
        app_dir = override
    else:
        if os.name == 'nt':  # Windows
            base = os.environ.get('LOCALAPPDATA', os.path.expanduser('~'))
        else:  # Linux/Mac
            base = os.path.join(os.path.expanduser('~'), '.config')
        app_dir = os.path.join(base, 'LaTeX_Generator')
    os.makedirs(app_dir, exist_ok=True)
    return app_dir


def setup_logger(name: str) -> logging.Logger:
    """
    Set up and configure logger with both file and console handlers.

    Args:
        name: Name of the logger, typically __name__ from the calling module

    Returns:
        Configured logger instance
    """
    level_name = os.environ.get('LATEX_GENERATOR_LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Add handlers to logger if they haven't been added already
    if logger.handlers:
        return logger

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    try:
        log_dir = Path(get_app_data_dir()) / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / 'latex_generator.log', encoding='utf-8')
        fh.setLevel(level)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
    except OSError as e:
        logger.warning("Could not open log file: %s", e)

    return logger
