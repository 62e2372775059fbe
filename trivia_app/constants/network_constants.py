"""Network configuration constants for the trivia server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8080
MAX_PLAYERS: int = 10
OPERATOR_API_HOST: str = "127.0.0.1"
OPERATOR_API_PORT: int = 8000
ENCODING: str = "utf-8"
PROTOCOL_VERSION: str = "HTTP/1.0"
CLIENT_DEFAULT_HOST: str = "127.0.0.1"
SEND_TIMEOUT_SECONDS: float = 5.0
