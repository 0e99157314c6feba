import logging
from pathlib import Path
from datetime import datetime
from typing import Optional


# logging.py
def setup_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Set up logging configuration."""
    logger = logging.getLogger("stylus_forge")
    logger.setLevel(logging.DEBUG)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in logger.handlers):
        # Info console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(
            '%(levelname)s: %(message)s'
        ))
        logger.addHandler(console_handler)

    if log_dir is None or any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)

    # Debug file handler
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    debug_handler = logging.FileHandler(
        log_dir / f"debug_{timestamp}.log"
    )
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(debug_handler)

    return logger
