import contextvars
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

_current_job: contextvars.ContextVar[str] = contextvars.ContextVar("current_job", default="-")


class _JobFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.job = _current_job.get()
        return True


class Log:
    """Process-wide logger for stage workers and the CLI.

    Lines carry the component (stage name or ``ingress``), the worker thread
    and, inside ``Log.job(...)``, the id of the job being processed.
    """

    _logger: logging.Logger = logging.getLogger("doctranslate")

    @classmethod
    def configure(cls, log_level: str, component: str = "doctranslate") -> None:
        cls._logger.setLevel(log_level.upper())
        if cls._logger.handlers:
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(_JobFilter())
        handler.setFormatter(
            logging.Formatter(
                f"%(asctime)s [%(levelname)s] {component} %(threadName)s "
                "job=%(job)s %(message)s"
            )
        )
        cls._logger.addHandler(handler)

    @classmethod
    @contextmanager
    def job(cls, job_id: str) -> Iterator[None]:
        """Tag every line logged by this thread inside the block with ``job_id``."""
        token = _current_job.set(job_id)
        try:
            yield
        finally:
            _current_job.reset(token)

    @classmethod
    def info(cls, message: str, **kwargs: object) -> None:
        cls._logger.info(message, extra=kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: object) -> None:
        cls._logger.error(message, extra=kwargs)

    @classmethod
    def exception(cls, message: str, **kwargs: object) -> None:
        """Log at error level with the active exception's traceback."""
        cls._logger.exception(message, extra=kwargs)

    @classmethod
    def warning(cls, message: str, **kwargs: object) -> None:
        cls._logger.warning(message, extra=kwargs)

    @classmethod
    def debug(cls, message: str, **kwargs: object) -> None:
        cls._logger.debug(message, extra=kwargs)
