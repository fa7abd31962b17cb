"""
agentstream Logging System

Color-coded, context-aware logging for the agent server, the reasoning
pipeline and the tools it drives.
"""

import logging
import sys
import time
from typing import Optional
from colorama import Fore, Back, Style, init
from datetime import datetime
from contextvars import ContextVar

# Initialize colorama for cross-platform color support
init(autoreset=True)

# Context variables for logging
CURRENT_AGENT: ContextVar[Optional[str]] = ContextVar('current_agent', default=None)
CURRENT_REQUEST_ID: ContextVar[Optional[str]] = ContextVar('current_request_id', default=None)
CURRENT_SESSION_ID: ContextVar[Optional[str]] = ContextVar('current_session_id', default=None)

COMPONENT_COLORS = {
    'system': Fore.CYAN,
    'server': Fore.BLUE,
    'default': Fore.GREEN,
}


def get_agent_color(agent_name: str) -> str:
    """Get consistent color for agent name based on hash"""
    if agent_name in COMPONENT_COLORS:
        return COMPONENT_COLORS[agent_name]

    colors = [
        Fore.GREEN,
        Fore.CYAN,
        Fore.YELLOW,
        Fore.BLUE,
        Fore.MAGENTA,
        Fore.LIGHTGREEN_EX,
        Fore.LIGHTCYAN_EX,
        Fore.LIGHTYELLOW_EX,
    ]
    return colors[hash(agent_name) % len(colors)]


class AgentStreamFormatter(logging.Formatter):
    """Formatter with color-coded agent names and request context"""

    LEVEL_COLORS = {
        'DEBUG': Fore.WHITE,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE,
    }

    def format(self, record):
        agent_name = CURRENT_AGENT.get() or getattr(record, 'agent_name', None)
        request_id = CURRENT_REQUEST_ID.get() or getattr(record, 'request_id', None)
        session_id = CURRENT_SESSION_ID.get() or getattr(record, 'session_id', None)

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        level_color = self.LEVEL_COLORS.get(record.levelname, Fore.WHITE)
        colored_level = f"{level_color}{record.levelname:8s}{Style.RESET_ALL}"

        if agent_name:
            colored_agent = f"{get_agent_color(agent_name)}{agent_name[:15]:15s}{Style.RESET_ALL}"
        else:
            colored_agent = f"{'system':15s}"

        # Last dotted part of the logger name, truncated
        component = record.name.split('.')[-1][:12]

        context_parts = []
        if request_id:
            context_parts.append(f"req={request_id[:8]}")
        if session_id:
            context_parts.append(f"session={session_id[:8]}")
        context_str = f" [{':'.join(context_parts)}]" if context_parts else ""

        log_line = (
            f"{Fore.WHITE}{timestamp}{Style.RESET_ALL} {colored_level} {colored_agent} "
            f"{Fore.BLUE}{component:12s}{Style.RESET_ALL}{context_str} {record.getMessage()}"
        )

        if record.exc_info:
            log_line += '\n' + self.formatException(record.exc_info)

        return log_line


class AgentContextAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically includes agent context"""

    def __init__(self, logger, agent_name: str):
        super().__init__(logger, {})
        self.agent_name = agent_name

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        extra['agent_name'] = self.agent_name

        request_id = CURRENT_REQUEST_ID.get()
        if request_id:
            extra['request_id'] = request_id

        kwargs['extra'] = extra
        return msg, kwargs


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Setup the agentstream logging system"""

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger('agentstream')
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(AgentStreamFormatter())
    root_logger.addHandler(console_handler)

    # File handler if specified (without colors)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)-8s %(name)-24s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(file_handler)

    root_logger.propagate = False

    # Set levels for noisy libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    litellm_logger = logging.getLogger('LiteLLM')
    litellm_logger.setLevel(logging.WARNING)
    litellm_logger.handlers.clear()
    litellm_handler = logging.StreamHandler(sys.stdout)
    litellm_handler.setFormatter(AgentStreamFormatter())
    litellm_logger.addHandler(litellm_handler)
    litellm_logger.propagate = False


def get_logger(name: str, agent_name: Optional[str] = None):
    """Get a logger for a specific component, optionally with agent context"""

    logger_name = f"agentstream.{name}" if not name.startswith('agentstream') else name
    logger = logging.getLogger(logger_name)

    if agent_name:
        return AgentContextAdapter(logger, agent_name)

    return logger


def set_request_context(request_id: str, agent_name: Optional[str] = None, session_id: Optional[str] = None):
    """Set the current request context for logging.

    Context variables are copied into tasks spawned afterwards, so the
    pipeline and bridge tasks of a request inherit these values.
    """
    CURRENT_REQUEST_ID.set(request_id)
    if agent_name:
        CURRENT_AGENT.set(agent_name)
    if session_id:
        CURRENT_SESSION_ID.set(session_id)


def clear_request_context():
    """Clear the current request context"""
    CURRENT_AGENT.set(None)
    CURRENT_REQUEST_ID.set(None)
    CURRENT_SESSION_ID.set(None)


def log_tool_execution(agent_name: str, tool_name: str, duration_ms: int, success: bool = True):
    """Log tool execution with timing"""
    logger = get_logger('tool.execution', agent_name)
    status = "SUCCESS" if success else "FAILED"
    logger.info(f"Tool {tool_name} {status} ({duration_ms}ms)")


class LogTimer:
    """Context manager for timing operations with automatic logging"""

    def __init__(self, operation_name: str, logger, level: int = logging.DEBUG):
        self.operation_name = operation_name
        self.logger = logger
        self.level = level
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.log(self.level, f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = int((time.time() - self.start_time) * 1000)
        if exc_type:
            self.logger.error(f"{self.operation_name} FAILED ({duration_ms}ms): {exc_val}")
        else:
            self.logger.log(self.level, f"{self.operation_name} completed ({duration_ms}ms)")


def timer(operation_name: str, agent_name: Optional[str] = None, level: int = logging.DEBUG):
    """Create a timing context manager"""
    logger = get_logger('performance', agent_name)
    return LogTimer(operation_name, logger, level)
