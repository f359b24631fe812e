"""Structured logging for the API process and per-request access logs.

structlog events and stdlib records (the sensor feed logs its fetch timings
through ``logging`` with ``extra``) share one renderer, so both come out as
JSON lines or console lines depending on ``LOG_FORMAT``.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from agrosense.config import LogFormat, Settings, get_settings

_configured = False


def configure_structured_logging(settings: Settings | None = None) -> None:
	"""Route structlog and stdlib logging through a shared processor chain, once."""
	global _configured
	if _configured:
		return

	settings = settings or get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	shared_processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.stdlib.add_logger_name,
		structlog.stdlib.add_log_level,
		structlog.processors.TimeStamper(fmt="iso", utc=True),
	]

	if settings.log_format == LogFormat.json:
		render_chain: list[Any] = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
	else:
		render_chain = [structlog.dev.ConsoleRenderer()]

	structlog.configure(
		processors=[
			structlog.stdlib.filter_by_level,
			*shared_processors,
			structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
		],
		logger_factory=structlog.stdlib.LoggerFactory(),
		wrapper_class=structlog.stdlib.BoundLogger,
		cache_logger_on_first_use=True,
	)

	handler = logging.StreamHandler()
	handler.setFormatter(
		structlog.stdlib.ProcessorFormatter(
			foreign_pre_chain=[*shared_processors, structlog.stdlib.ExtraAdder()],
			processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render_chain],
		)
	)
	root = logging.getLogger()
	root.addHandler(handler)
	root.setLevel(log_level)
	_configured = True


def annotate_request(request: Request, **fields: Any) -> None:
	"""Add domain fields (crop, stage, error_code, cache hit) to this request's access log line."""
	log_fields = getattr(request.state, "log_fields", None)
	if log_fields is None:
		log_fields = {}
		request.state.log_fields = log_fields
	log_fields.update({key: value for key, value in fields.items() if value is not None})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Attach request IDs and emit one structured access log per request.

	Server errors are logged at warning level; fields added by routes through
	:func:`annotate_request` are merged into the access log.
	"""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
		request.state.request_id = request_id
		request.state.log_fields = {}

		structlog.contextvars.clear_contextvars()
		structlog.contextvars.bind_contextvars(request_id=request_id)

		logger = structlog.get_logger("agrosense.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=request.url.path,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
				error=str(exc),
				**request.state.log_fields,
			)
			raise

		response.headers["x-request-id"] = request_id
		log = logger.warning if response.status_code >= 500 else logger.info
		log(
			"http_request",
			method=request.method,
			path=request.url.path,
			status_code=response.status_code,
			duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
			**request.state.log_fields,
		)
		return response
