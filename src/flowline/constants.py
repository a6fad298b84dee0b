"""Package-wide constants."""

PACKAGE_VERSION = "0.3.0"
SCHEMA_VERSION = "1.0.0"

WAITING_ON_NODE_KEY = "waiting_on_node"
RESUME_AT_PREFIX = "resume_at_"
DELAY_DONE_PREFIX = "delay_done_"


def resume_at_key(node_id: str) -> str:
    return f"{RESUME_AT_PREFIX}{node_id}"


def delay_done_key(node_id: str) -> str:
    return f"{DELAY_DONE_PREFIX}{node_id}"
