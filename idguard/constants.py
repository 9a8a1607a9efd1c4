"""
Shared limits for path, identity and audit-log handling.

All length limits for identity fields are in characters unless noted.
PATH_MAX is measured in UTF-8 bytes, matching POSIX.
"""

# Filesystem
PATH_MAX = 4096

# Identity
MAX_IDENTITIES = 1000
MAX_ID_LENGTH = 64
# 64 (local part) + 1 (@) + 255 (domain)
MAX_EMAIL_LENGTH = 320
MAX_SSH_HOST_LENGTH = 253
MAX_NAME_LENGTH = 256
MAX_SERVICE_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 500
MAX_ICON_BYTE_LENGTH = 32

# Sanitizer / audit log
MAX_PATTERN_CHECK_LENGTH = 1000
MAX_LOG_STRING_LENGTH = 50
MIN_SECRET_LENGTH = 32
MAX_SECRET_LENGTH = 256
MAX_LOG_MESSAGE_LENGTH = 256
