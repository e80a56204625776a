from .assignments import AssignmentStore
from .bootstrap import BootstrapResult, bootstrap
from .config import CoreConfig, DatabaseConfig, LogLevel, SecurityConfig, load_config_from_env
from .exceptions import (
    ConfigurationError,
    ConflictError,
    CycleError,
    InconsistentError,
    NotFoundError,
    SecurityError,
    StorageError,
    TenantCoreError,
    ValidationError,
)
from .logging import (
    CoreFormatter,
    RequestLoggerAdapter,
    get_request_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .namespaces import NamespaceTree
from .permissions import Permissions, PermissionResolver, RoleCatalog, RoleLevel
from .records import (
    Assignment,
    CopyResult,
    IssuedToken,
    Member,
    NamespaceInfo,
    NamespaceTreeNode,
    PermissionInfo,
    RoleInfo,
    SessionInfo,
    TokenType,
    UserInfo,
    UserStatus,
    VerifiedToken,
)
from .security import AccessGuard, GuardResult, extract_bearer_token
from .storage import Database
from .tokens import TokenManager
from .users import UserDirectory

__all__ = [
    # Components
    'AccessGuard',
    'AssignmentStore',
    'Database',
    'NamespaceTree',
    'PermissionResolver',
    'RoleCatalog',
    'TokenManager',
    'UserDirectory',
    'bootstrap',
    'BootstrapResult',
    # Config
    'CoreConfig',
    'DatabaseConfig',
    'LogLevel',
    'SecurityConfig',
    'load_config_from_env',
    # Errors
    'TenantCoreError',
    'NotFoundError',
    'ConflictError',
    'CycleError',
    'InconsistentError',
    'ValidationError',
    'ConfigurationError',
    'SecurityError',
    'StorageError',
    # Logging
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'CoreFormatter',
    'RequestLoggerAdapter',
    'setup_logging',
    'get_request_logger',
    # Records
    'Assignment',
    'CopyResult',
    'GuardResult',
    'IssuedToken',
    'Member',
    'NamespaceInfo',
    'NamespaceTreeNode',
    'PermissionInfo',
    'Permissions',
    'RoleInfo',
    'RoleLevel',
    'SessionInfo',
    'TokenType',
    'UserInfo',
    'UserStatus',
    'VerifiedToken',
    'extract_bearer_token',
]
