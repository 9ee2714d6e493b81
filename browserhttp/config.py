from dataclasses import dataclass

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:128.0) Gecko/20100101 Firefox/128.0"
FORM_URLENCODED = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class Defaults:
    """
    Values a Client falls back to whenever its request state is reset.

    A single instance is handed to the Client at construction time, so the
    boundary token and user-agent string never live as module state.
    """
    http_version: str = "1.1"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 10.0
    mime_content_type: str = FORM_URLENCODED
    boundary: str = "browserhttp.boundary"
    follow_redirect: bool = False
    max_redirect: int = 3
    use_native: bool = False

    def __post_init__(self) -> None:
        if self.http_version not in ("1.0", "1.1"):
            raise ValueError(f"Unsupported HTTP version: {self.http_version}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_redirect < 1:
            raise ValueError("max_redirect must be at least 1")


DEFAULTS = Defaults()
