"""
AMI action construction.

Every key and value is checked before it reaches the wire: a CR or LF inside a value
would let a caller append extra lines, or a whole extra action, to the block.
"""

import re

from asterisk.ami import SimpleAction

from .errors import ProtocolFieldError

KEY_RE = re.compile(r"[A-Za-z0-9_\-]+")
FORBIDDEN_CHARS = ("\r", "\n", "\x00")
TERMINATOR = "\r\n"


def _check_value(key: str, value) -> str:
    text = str(value)
    if any(char in text for char in FORBIDDEN_CHARS):
        raise ProtocolFieldError(f"Illegal characters in AMI field {key}")
    return text


def build_action(name: str, **fields) -> SimpleAction:
    """Build a SimpleAction whose name, keys and values are safe to serialize"""
    if not KEY_RE.fullmatch(name):
        raise ProtocolFieldError(f"Illegal AMI action name: {name!r}")
    checked = {}
    for key, value in fields.items():
        if not KEY_RE.fullmatch(key):
            raise ProtocolFieldError(f"Illegal AMI field name: {key!r}")
        checked[key] = _check_value(key, value)
    return SimpleAction(name, **checked)


def serialize_action(action: SimpleAction) -> bytes:
    """Render an action as CRLF lines followed by exactly one blank line"""
    block = str(action).rstrip(TERMINATOR)
    return (block + TERMINATOR + TERMINATOR).encode("utf-8")


def render_caller_id(template: str, number: str) -> str:
    """Fill the caller-ID template, e.g. 'CTR Plugin (%s)'"""
    return _check_value("CallerId", template % (number,))
