import logging
import sys
from contextlib import contextmanager
from typing import Dict, Optional

import click
from pyhanko.config.errors import ConfigurationError
from pyhanko.config.logging import LogConfig, StdLogOutput
from pyhanko.pdf_utils import misc

from sigillum.cli.utils import logger
from sigillum.config import DEFAULT_CONFIG_FILE
from sigillum.errors import (
    InvalidInputError,
    KeyGenerationError,
    KeyMismatchError,
    MalformedKeyError,
    NoKeyLoadedError,
    SigillumError,
    UnparsableDocumentError,
)

__all__ = [
    'DEFAULT_CONFIG_FILE',
    'LOG_FORMAT',
    'ExceptionSummaryFormatter',
    'logging_setup',
    'sigillum_exception_manager',
]

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class ExceptionSummaryFormatter(logging.Formatter):
    """
    Formatter that condenses an attached exception to its type and message,
    instead of printing the full traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        # format a copy, the traceback cached on the original record is
        # still needed by other handlers
        bare = logging.makeLogRecord(
            dict(record.__dict__, exc_info=None, exc_text=None)
        )
        text = super().format(bare)
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            text += f" ({type(exc).__name__}: {exc})"
        return text


def _make_handler(log_config: LogConfig, verbose: bool) -> logging.Handler:
    output = log_config.output
    if not isinstance(output, StdLogOutput):
        handler: logging.Handler = logging.FileHandler(output)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        return handler
    stream = sys.stdout if output == StdLogOutput.STDOUT else sys.stderr
    handler = logging.StreamHandler(stream)
    # full tracebacks on the console only with --verbose
    formatter_cls = logging.Formatter if verbose else ExceptionSummaryFormatter
    handler.setFormatter(formatter_cls(LOG_FORMAT))
    return handler


def logging_setup(log_configs: Dict[Optional[str], LogConfig], verbose: bool):
    """
    Attach a handler to each logger named in a logging configuration.

    :param log_configs:
        Logging configuration, keyed by logger name. ``None`` is the root
        logger.
    :param verbose:
        Print tracebacks to the console.
    """
    for logger_name, log_config in log_configs.items():
        target = logging.getLogger(logger_name)
        target.setLevel(log_config.level)
        target.addHandler(_make_handler(log_config, verbose))


@contextmanager
def sigillum_exception_manager():
    msg = exception = None
    try:
        yield
    except click.ClickException:
        raise
    except NoKeyLoadedError as e:
        exception = e
        msg = (
            "No keypair available; run 'sigillum keygen' or "
            "'sigillum import' first."
        )
    except (MalformedKeyError, KeyMismatchError, KeyGenerationError) as e:
        exception = e
        msg = f"Key error: {e.msg}"
    except UnparsableDocumentError as e:
        exception = e
        msg = f"Failed to read PDF file: {e.msg}"
    except InvalidInputError as e:
        exception = e
        msg = f"Invalid input: {e.msg}"
    except SigillumError as e:
        exception = e
        msg = f"Error raised while processing signature: {e.msg}"
    except ConfigurationError as e:
        exception = e
        msg = f"Configuration problem: {e.msg}"
    except misc.PdfReadError as e:
        exception = e
        msg = f"Failed to read PDF file: {e.msg}"
    except misc.PdfWriteError as e:
        exception = e
        msg = f"Failed to write PDF file: {e.msg}"
    except OSError as e:
        exception = e
        msg = f"I/O error: {e}"
    except Exception as e:
        exception = e
        msg = "Generic processing error."

    if exception is not None:
        logger.error(msg, exc_info=exception)
        raise click.ClickException(msg)
