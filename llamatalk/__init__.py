"""llamatalk - Interactive terminal chat client for local Ollama servers"""

from .catalog import ModelCatalogClient, ModelDescriptor
from .config import (
    CONFIG_FILE,
    DEFAULT_CONFIG,
    EXIT_COMMAND,
    LLAMATALK_DIR,
    LOG_FILE,
    Settings,
    ensure_llamatalk_dir,
    get_bool_setting,
    get_float_setting,
    get_int_setting,
    get_setting,
    load_config,
    setup_logging,
)
from .console import console
from .context import AppContext
from .controller import SessionController, TerminalUI
from .errors import (
    CatalogUnavailable,
    LlamaTalkError,
    MalformedResponse,
    NoModelsAvailable,
    NotInstalled,
    NoTrackedServer,
    RequestFailed,
    ServerNotRunning,
    ServerStartFailed,
    ServerStartTimeout,
    ServerStopFailed,
    UnsupportedPlatform,
    UserQuit,
)
from .llm import GenerationClient
from .server import ServerLifecycleManager
from .session import (
    ChatSession,
    Conversation,
    ExitSignal,
    GenerationRequest,
    Message,
    Sender,
    SessionState,
)

__all__ = [
    # Config
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "EXIT_COMMAND",
    "LLAMATALK_DIR",
    "LOG_FILE",
    "Settings",
    "ensure_llamatalk_dir",
    "get_bool_setting",
    "get_float_setting",
    "get_int_setting",
    "get_setting",
    "load_config",
    "setup_logging",
    # Console
    "console",
    # Core
    "AppContext",
    "ChatSession",
    "Conversation",
    "ExitSignal",
    "GenerationClient",
    "GenerationRequest",
    "Message",
    "ModelCatalogClient",
    "ModelDescriptor",
    "Sender",
    "ServerLifecycleManager",
    "SessionController",
    "SessionState",
    "TerminalUI",
    # Errors
    "CatalogUnavailable",
    "LlamaTalkError",
    "MalformedResponse",
    "NoModelsAvailable",
    "NotInstalled",
    "NoTrackedServer",
    "RequestFailed",
    "ServerNotRunning",
    "ServerStartFailed",
    "ServerStartTimeout",
    "ServerStopFailed",
    "UnsupportedPlatform",
    "UserQuit",
]
