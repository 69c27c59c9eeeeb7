"""Bootstrap: wires all components together."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

from fsleash.core.config import FsleashConfig, load_config
from fsleash.core.resolver import PathResolver
from fsleash.core.safety.audit import AuditLogger
from fsleash.core.safety.redaction import Redactor
from fsleash.core.safety.sandbox import SandboxBoundary
from fsleash.core.session import FilesystemSession
from fsleash.fs.service import FilesystemService
from fsleash.middleware.audit import AuditMiddleware
from fsleash.middleware.base import MiddlewareChain
from fsleash.middleware.rate_limit import RateLimitMiddleware
from fsleash.server import FsleashServer

logger = structlog.get_logger()


def _resolve_against(path: Path, base: Path) -> Path:
    """Return *path* unchanged if absolute, otherwise resolve it against *base*."""
    return path if path.is_absolute() else base / path


def _configure_logging(
    config: FsleashConfig, redactor: Redactor, *, log_dir: Path | None = None
) -> None:
    """Set up structlog with stderr console output and optional rotating JSON file."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redactor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    # stdout carries the MCP stream, console output goes to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
        )
    )
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "app.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        root_logger.addHandler(file_handler)

    # MCP transport chatter floods INFO
    for noisy_logger in ("mcp", "mcp.server", "httpx", "httpcore"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_server(
    config: FsleashConfig | None = None,
    *,
    project_root: Path | None = None,
    session: FilesystemSession | None = None,
) -> FsleashServer:
    if config is None:
        config = load_config()

    root = project_root or Path(os.getcwd())
    resolved_log_dir = (
        _resolve_against(config.log_dir, root) if config.log_dir is not None else None
    )
    resolved_audit = (
        _resolve_against(config.audit_log_path, root)
        if config.audit_log_path is not None
        else None
    )

    redactor = Redactor(config.sensitive_fields)
    _configure_logging(config, redactor, log_dir=resolved_log_dir)

    logger.info(
        "server_building",
        base_directory=config.base_directory,
        log_level=config.log_level,
        default_max_entries=config.default_max_entries,
    )

    sandbox = SandboxBoundary.from_config(config, project_root=str(root))
    resolver = PathResolver(sandbox)
    service = FilesystemService(
        resolver, default_max_entries=config.default_max_entries
    )

    middleware_chain = MiddlewareChain()
    if resolved_audit is not None:
        middleware_chain.add(AuditMiddleware(AuditLogger(resolved_audit, redactor)))
    if config.rate_limit_rpm > 0:
        middleware_chain.add(
            RateLimitMiddleware(config.rate_limit_rpm, config.rate_limit_burst)
        )

    server = FsleashServer(
        service,
        middleware_chain=middleware_chain,
        session=session,
        name=config.server_name,
    )

    logger.info(
        "server_built",
        sandbox_active=sandbox.active,
        has_audit=resolved_audit is not None,
        has_rate_limit=config.rate_limit_rpm > 0,
        session_id=server.session.session_id,
    )
    return server
