"""Core constants: cache sentinels, key layout, and shared literal values.

Single source of truth for the reserved payloads that every cache backend
must agree on.
"""

# Reserved payloads stored in place of JSON data
EMPTY_COLLECTION = "_##_EMPTY_ARRAY_##_"
PENDING_FETCH = "_##_TO_BE_FETCHED_##_"

# Scope used until set_scope() selects one
DEFAULT_SCOPE = "default"

# Owner slot for global (not user-relative) values, and the scalar entry slot
GLOBAL_OWNER_ID = 0
SCALAR_ENTRY_ID = 0

# Wildcard accepted in key patterns (invalidation only)
KEY_WILDCARD = "*"

# Persistent cache table
CACHE_TABLE_NAME = "pleesher_cache"

# Session store key prefix
SESSION_KEY_PREFIX = "pleesher_cache"
SESSION_KEY_SEP = ":"

# Configurable choices
CACHE_LAYERS = ("local", "session", "database")
SESSION_STORE_BACKENDS = ("memory", "redis")

# Cache keys used by the API client
CACHE_KEY_ACCESS_TOKEN = "access_token"
CACHE_KEY_USER = "user"
CACHE_KEY_GOAL = "goal"
CACHE_KEY_REWARD = "reward"
CACHE_KEY_NOTIFICATION = "notification"
