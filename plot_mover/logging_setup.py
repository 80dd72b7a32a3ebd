import os
import logging
from logging.handlers import RotatingFileHandler

WORKER_THREAD_PREFIX = 'plot-transfer'

class PlotMoverFormatter(logging.Formatter):
    """
    Formats plain records on one line and finished transfers as a block.

    Records emitted from a transfer worker thread carry the worker's name so
    the interleaved output of concurrent copies can be told apart.
    """

    def _prefix(self, record):
        prefix = f"{self.formatTime(record)} - {record.levelname}"
        if record.threadName.startswith(WORKER_THREAD_PREFIX):
            prefix += f" - [{record.threadName}]"
        return prefix

    def format(self, record):
        prefix = self._prefix(record)
        if not getattr(record, 'plot_transfer', False):
            text = f"{prefix} - {record.getMessage()}"
        else:
            elapsed = getattr(record, 'elapsed', 0.0)
            size = getattr(record, 'size', 0)
            speed = size / elapsed / (1024 * 1024) if elapsed > 0 else 0.0
            text = (f"{prefix} - Plot Transfer:\n"
                    f"  From: {record.src}\n"
                    f"  To: {record.dest}\n"
                    f"  {record.getMessage()} ({speed:.2f} MB/s)")
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text

def _resolve_level(name):
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else None

def setup_logging(config, console_log):
    """
    Attach the rotating log file (and optionally the console) to the root logger.

    Handlers installed by an earlier call are replaced, not duplicated.
    """
    log_path = config['Paths']['LOG_PATH']
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    formatter = PlotMoverFormatter()
    log_handler = RotatingFileHandler(
        log_path,
        maxBytes=config['Settings']['MAX_LOG_SIZE_MB'] * 1024 * 1024,
        backupCount=config['Settings']['BACKUP_COUNT']
    )
    handlers = [log_handler]
    if console_log:
        handlers.append(logging.StreamHandler())

    logger = logging.getLogger()
    for handler in logger.handlers[:]:
        if getattr(handler, '_plot_mover', False):
            logger.removeHandler(handler)
            handler.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._plot_mover = True
        logger.addHandler(handler)

    configured = config['Settings'].get('LOG_LEVEL', 'INFO')
    level = _resolve_level(configured)
    logger.setLevel(level if level is not None else logging.INFO)
    if level is None:
        logger.warning(f"Unknown LOG_LEVEL {configured!r}, using INFO")

    return logger
