import sys
from pathlib import Path

from loguru import logger


def safe_log_text(text):
    """Escape only loguru formatting characters, keep brackets intact"""
    if not isinstance(text, str):
        text = str(text)
    return text.replace('{', '{{').replace('}', '}}').replace('<', r'\<')


def setup_logging(log_dir: str = "logs", console_level: str = "INFO"):
    """Configure console and rotating file sinks"""

    def format_console(record):
        if log_data := record['extra'].get('exchange', '').capitalize():
            log_data += " "

        log_data += safe_log_text(record["message"])
        return f"<green>{{time:HH:mm:ss}}</green> | <level>{{level: <7}}</level> | {log_data}\n"

    def format_file(record):
        return (
            "{time:YYYY-MM-DD HH:mm:ss} | {level} | "
            f"{record['extra'].get('component', 'app')} | "
            f"{safe_log_text(record['extra'].get('exchange', '-'))} | "
            f"{safe_log_text(record['message'])}\n{{exception}}"
        )

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"component": "app", "exchange": ""})

    logger.add(sys.stdout, format=format_console, level=console_level)

    # File handler - DEBUG and above
    logger.add(
        f"{log_dir}/app.log",
        format=format_file,
        level="DEBUG",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    # Error file handler
    logger.add(
        f"{log_dir}/errors.log",
        format=format_file,
        level="ERROR",
        rotation="5 MB",
        retention="30 days",
        encoding="utf-8",
    )
