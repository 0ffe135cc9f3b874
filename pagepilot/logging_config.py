import locale
import logging
import sys

from pagepilot.config import CONFIG
from pagepilot.timing import now_utc_iso, process_start_utc_iso, uptime_seconds

RESULT_LEVEL = 35

# Loggers of client libraries that are far too chatty at INFO
THIRD_PARTY_LOGGERS = [
	'openai',
	'openai._base_client',
	'httpx',
	'httpcore',
	'asyncio',
	'urllib3',
	'charset_normalizer',
]


def register_result_level():
	"""Make RESULT usable as `logging.RESULT` and `logger.result(...)`. Safe to call repeatedly."""
	if logging.getLevelName(RESULT_LEVEL) == 'RESULT':
		return
	logging.addLevelName(RESULT_LEVEL, 'RESULT')
	logging.RESULT = RESULT_LEVEL

	def result(self, message, *args, **kwargs):
		if self.isEnabledFor(RESULT_LEVEL):
			self._log(RESULT_LEVEL, message, args, **kwargs)

	logging.getLoggerClass().result = result


class SafeStreamHandler(logging.StreamHandler):
	"""Stream handler that degrades to replacement characters instead of raising on encode errors."""

	def emit(self, record):  # type: ignore[override]
		try:
			msg = self.format(record)
			stream = self.stream
			try:
				stream.write(msg + self.terminator)
			except UnicodeEncodeError:
				enc = getattr(stream, 'encoding', None) or locale.getpreferredencoding(False) or 'utf-8'
				stream.write(msg.encode(enc, errors='replace').decode(enc, errors='replace') + self.terminator)
			self.flush()
		except Exception:
			self.handleError(record)


class PagePilotFormatter(logging.Formatter):
	"""Adds `utc` and `uptime` fields to every record."""

	def format(self, record):
		record.utc = now_utc_iso()
		record.uptime = f'{uptime_seconds():.3f}s'
		return super().format(record)


def setup_logging(stream=None, log_level=None, force_setup=False):
	"""Configure logging for pagepilot.

	Args:
		stream: Output stream for logs (default: sys.stdout).
		log_level: Override log level (default: CONFIG.PAGEPILOT_LOGGING_LEVEL).
		force_setup: Reconfigure even if the root logger already has handlers.
	"""
	register_result_level()

	log_type = log_level or CONFIG.PAGEPILOT_LOGGING_LEVEL

	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('pagepilot')

	root = logging.getLogger()
	root.handlers = []

	console = SafeStreamHandler(stream or sys.stdout)
	if log_type == 'result':
		console.setLevel('RESULT')
		console.setFormatter(PagePilotFormatter('%(message)s'))
	else:
		console.setFormatter(PagePilotFormatter('%(levelname)-8s [%(name)s] %(utc)s (+%(uptime)s) %(message)s'))

	root.addHandler(console)

	if log_type == 'result':
		root.setLevel('RESULT')
	elif log_type == 'debug':
		root.setLevel(logging.DEBUG)
	else:
		root.setLevel(logging.INFO)

	pagepilot_logger = logging.getLogger('pagepilot')
	pagepilot_logger.handlers = []
	pagepilot_logger.propagate = False
	pagepilot_logger.addHandler(console)
	pagepilot_logger.setLevel(root.level)

	pagepilot_logger.debug(f'Logging initialized at {now_utc_iso()} (process_start={process_start_utc_iso()})')

	for logger_name in THIRD_PARTY_LOGGERS:
		third_party = logging.getLogger(logger_name)
		third_party.setLevel(logging.ERROR)
		third_party.propagate = False

	return pagepilot_logger
