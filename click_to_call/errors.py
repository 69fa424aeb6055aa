"""Error taxonomy for the click-to-call workflow.

Every error raised by the core derives from ClickToCallError. The message of each
error is the human-readable description reported back to the caller.
"""


class ClickToCallError(Exception):
    """Base class for all click-to-call errors"""


class InvalidInputError(ClickToCallError):
    """Extension or number has an invalid format"""


class ProtocolFieldError(InvalidInputError):
    """A value would break AMI framing if written to the wire"""


class UnauthorizedError(ClickToCallError):
    """Client address is not in the allow-list"""


class ManagerConnectionError(ClickToCallError, ConnectionError):
    """AMI transport could not be established or was lost"""


class AuthenticationError(ClickToCallError):
    """AMI rejected the login"""


class ProtocolTimeoutError(ClickToCallError, TimeoutError):
    """No complete response block arrived before the deadline"""


class TechnologyLookupError(ClickToCallError, LookupError):
    """Device technology for an extension could not be found"""


class OriginateError(ClickToCallError):
    """AMI rejected the Originate action"""


class SessionStateError(ClickToCallError):
    """Operation not allowed in the current session state"""
