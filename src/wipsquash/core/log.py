"""Logging through logfire, with console, file and cloud sinks.

Modules log through the `logger` proxy. setup_logger() (called when
configuration loads) decides where the records go; until then every
call is dropped.
"""

from __future__ import annotations

import contextlib
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import logfire
from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
    SpanExportResult,
)
from pydantic import Field, PrivateAttr, model_validator

from wipsquash.core.base import BaseConfig

LEVELS = {
    'trace': logs_pb2.SEVERITY_NUMBER_TRACE,
    'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,
    'info': logs_pb2.SEVERITY_NUMBER_INFO,
    'warn': logs_pb2.SEVERITY_NUMBER_WARN,
    'error': logs_pb2.SEVERITY_NUMBER_ERROR,
    'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,
}
DEFAULT_SEVERITY = LEVELS['info']

# Span attributes added by logfire itself; not shown as extras
_BOOKKEEPING = frozenset({
    'code.filepath', 'code.lineno', 'code.function',
    'logfire.msg', 'logfire.level_num', 'logfire.span_type',
    'logfire.msg_template', 'logfire.json_schema',
})
_BOOKKEEPING_PREFIXES = ('otel.', 'telemetry.', 'service.', 'process.')


def level_name(level_num: int) -> str:
    """Name of the highest level at or below level_num."""
    for name, number in sorted(LEVELS.items(), key=lambda item: -item[1]):
        if level_num >= number:
            return name
    return 'trace'


def severity(span: ReadableSpan) -> int:
    return (span.attributes or {}).get('logfire.level_num', DEFAULT_SEVERITY)


class LevelFilteringExporter(SpanExporter):
    """Drops spans below min_level before handing the rest on."""

    def __init__(self, exporter: SpanExporter, min_level: str | None):
        self._exporter = exporter
        self._threshold = LEVELS.get((min_level or 'info').lower(), DEFAULT_SEVERITY)

    def export(self, spans):
        wanted = [span for span in spans if severity(span) >= self._threshold]
        if not wanted:
            return SpanExportResult.SUCCESS
        return self._exporter.export(wanted)

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


def format_span(span: ReadableSpan, template: str | None) -> str:
    """One log line for span.

    template may use {timestamp}, {level}, {message} and {function}.
    Attributes passed by the caller follow the line as key=value
    pairs. Without a template the span is written as JSON.
    """
    if not template:
        return span.to_json() + os.linesep

    attrs = dict(span.attributes or {})
    try:
        line = template.format(
            timestamp=datetime.fromtimestamp(span.start_time / 1e9, tz=UTC),
            level=level_name(severity(span)),
            message=attrs.get('logfire.msg', span.name),
            function=attrs.get('code.function', ''),
        )
    except (KeyError, IndexError) as e:
        return f"ERROR: bad log format template field {e}\n"

    extras = sorted(
        (key, value) for key, value in attrs.items()
        if key not in _BOOKKEEPING and not key.startswith(_BOOKKEEPING_PREFIXES)
    )
    if extras:
        line += ' │ ' + ' '.join(f"{key}={value!r}" for key, value in extras)
    return line + '\n'


class Sink(BaseConfig):
    """One place log records go. Closed along with the Logger."""

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description="trace, debug, info, warn, error or fatal "
        "(default: the logger's level)",
    )

    _processor: SpanProcessor | None = PrivateAttr(default=None)

    def create_processor(self, log_root: Path, run_name: str) -> SpanProcessor | None:
        """Extra span processor for this sink. Sinks that logfire
        handles natively return None.
        """
        return None

    def close(self):
        if self._processor is not None:
            with contextlib.suppress(Exception):
                self._processor.shutdown()
            self._processor = None


class ConsoleSink(Sink):
    """Messages on stderr, rendered by logfire."""

    verbose: bool = Field(default=False, description="Show span details")
    colors: str = Field(default="auto", description="auto, always or never")

    def options(self) -> logfire.ConsoleOptions | bool:
        if not self.enabled:
            return False
        return logfire.ConsoleOptions(
            min_log_level=self.level,
            verbose=self.verbose,
            colors=self.colors,
            include_timestamps=False,
        )


class FileSink(Sink):
    """Plain text log file, appended to across runs of the same day."""

    enabled: bool = Field(default=False, description="Write a log file")
    path: str = Field(
        default="{log_root}/{run_name}.log",
        description="File path; {log_root} and {run_name} are filled in",
    )
    format_template: str | None = Field(
        default="{timestamp:%Y-%m-%d %H:%M:%S} [{level}] {message}",
        description="Line format, or null for one JSON object per span",
    )

    _file: Any = PrivateAttr(default=None)

    def create_processor(self, log_root: Path, run_name: str) -> SpanProcessor:
        log_path = Path(self.path.format(log_root=log_root, run_name=run_name))
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(log_path, "a", buffering=1, encoding="utf-8")  # noqa: SIM115

        exporter = ConsoleSpanExporter(
            out=self._file,
            formatter=lambda span: format_span(span, self.format_template),
        )
        return BatchSpanProcessor(LevelFilteringExporter(exporter, self.level))

    def close(self):
        # Flush pending spans before the file goes away
        super().close()
        if self._file is not None and not self._file.closed:
            with contextlib.suppress(OSError):
                self._file.close()


class LogfireSink(Sink):
    """Export to logfire.dev."""

    enabled: bool = Field(default=False, description="Send to logfire.dev")
    token: str | None = Field(
        default=None, description="Write token (or set LOGFIRE_TOKEN)"
    )


class Logger(BaseConfig):
    """The logger section of the configuration, and the object
    every `logger.*` call ends up at once set up.
    """

    level: str = Field(
        default="warn",
        description="Level for sinks that don't set their own",
    )
    console: ConsoleSink = Field(default_factory=ConsoleSink)
    file: FileSink = Field(default_factory=FileSink)
    logfire: LogfireSink = Field(default_factory=LogfireSink)

    @model_validator(mode='after')
    def _default_sink_levels(self) -> Logger:
        for sink in (self.console, self.file):
            sink.level = sink.level or self.level
        return self

    def setup(self, log_root: Path, run_name: str):
        """Open the enabled sinks and point logfire at them."""
        extra = []
        for sink in (self.console, self.file, self.logfire):
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, run_name)
                if sink._processor is not None:
                    extra.append(sink._processor)

        logfire.configure(
            service_name="wipsquash",
            send_to_logfire=self.logfire.enabled,
            token=self.logfire.token if self.logfire.enabled else None,
            console=self.console.options(),
            additional_span_processors=extra or None,
            inspect_arguments=False,
        )
        logfire.instrument_pydantic_ai()

    def log(self, level: str, msg: str, **attributes):
        """Log msg at a level name. msg is a logfire template, so
        values belong in attributes rather than in msg.
        """
        logfire.log(level, msg, attributes=attributes or None)

    def trace(self, msg: str, **attributes):
        logfire.trace(msg, **attributes)

    def debug(self, msg: str, **attributes):
        logfire.debug(msg, **attributes)

    def info(self, msg: str, **attributes):
        logfire.info(msg, **attributes)

    def warn(self, msg: str, **attributes):
        logfire.warn(msg, **attributes)

    warning = warn

    def error(self, msg: str, **attributes):
        logfire.error(msg, **attributes)

    def fatal(self, msg: str, **attributes):
        logfire.fatal(msg, **attributes)

    def span(self, msg: str, **attributes):
        """Context manager timing the enclosed block."""
        return logfire.span(msg, **attributes)


_current_logger: Logger | None = None


class _LoggerProxy:
    """Stands in for the Logger that setup_logger() creates.

    Calls made before setup do nothing.
    """

    def __getattr__(self, name):
        if _current_logger is not None:
            return getattr(_current_logger, name)
        if name == 'span':
            return lambda *args, **kwargs: contextlib.nullcontext()
        return lambda *args, **kwargs: None

    def __enter__(self):
        return self if _current_logger is None else _current_logger.__enter__()

    def __exit__(self, *exc):
        return False if _current_logger is None else _current_logger.__exit__(*exc)


logger = _LoggerProxy()


def setup_logger(
    log_root: Path,
    run_name: str,
    level: str | None = None,
    console: ConsoleSink | None = None,
    file: FileSink | None = None,
    logfire: LogfireSink | None = None,
) -> Logger:
    """Replace the global logger, closing the previous one.

    Args:
        log_root: Directory for log files
        run_name: Log file name without extension
        level: Level for sinks without their own
        console, file, logfire: Sink settings; defaults when None

    Returns:
        The new Logger
    """
    global _current_logger

    if _current_logger is not None:
        _current_logger.close()

    _current_logger = Logger(
        console=console or ConsoleSink(),
        file=file or FileSink(),
        logfire=logfire or LogfireSink(),
        **({"level": level} if level else {}),
    )
    _current_logger.setup(log_root, run_name)
    return _current_logger
