"""Console logging that survives Unicode/emoji payloads (reactions, message text)."""
import sys
import traceback
from typing import Any

# Configure stdout/stderr for UTF-8 on Windows
if sys.platform == 'win32':
    try:
        if hasattr(sys.stdout, 'reconfigure'):
            sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        if hasattr(sys.stderr, 'reconfigure'):
            sys.stderr.reconfigure(encoding='utf-8', errors='replace')
    except (AttributeError, OSError):
        pass


def _ascii(value: Any) -> Any:
    if isinstance(value, str):
        return value.encode('ascii', errors='replace').decode('ascii')
    if isinstance(value, dict):
        return {_ascii(k): _ascii(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_ascii(v) for v in value]
    return value


def safe_print(*args, **kwargs):
    """
    print() that falls back to an ASCII rendering instead of raising
    UnicodeEncodeError on consoles with a narrow codec.
    """
    try:
        print(*args, **kwargs)
    except (UnicodeEncodeError, UnicodeDecodeError):
        print(*[_ascii(arg) for arg in args], **kwargs)


def safe_repr(obj: Any) -> str:
    try:
        return repr(obj)
    except (UnicodeEncodeError, UnicodeDecodeError):
        return str(obj).encode('ascii', errors='replace').decode('ascii')


def log_event(tag: str, message: str) -> None:
    safe_print(f"[{tag}] {message}")


def log_failure(tag: str, action: str, exc: BaseException) -> None:
    """Report a swallowed failure (side effects, listener callbacks, pushes) with its traceback."""
    safe_print(f"[{tag}] Error {action}: {safe_repr(exc)}")
    try:
        safe_print("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except UnicodeEncodeError:
        safe_print("Traceback contains Unicode - check logs")
