import logging
import re
from typing import Callable, Optional

from .actions import render_caller_id
from .address_matcher import AddressMatcher
from .asterisk_manager import ManagerSession
from .config import Settings
from .errors import (
    ClickToCallError,
    InvalidInputError,
    ManagerConnectionError,
    OriginateError,
    ProtocolTimeoutError,
    TechnologyLookupError,
    UnauthorizedError,
)
from .models import CallRequest, CallResult

logger = logging.getLogger(__name__)

TECH_FAMILY = "DEVICE"
TECH_RE = re.compile(r"\w+", re.ASCII)

SessionFactory = Callable[[Settings], ManagerSession]


def default_session_factory(settings: Settings) -> ManagerSession:
    return ManagerSession(
        host=settings.manager_host,
        port=settings.manager_port,
        timeout=settings.response_timeout,
        connect_timeout=settings.connect_timeout,
    )


def extract_technology(value: Optional[str]) -> Optional[str]:
    """Leading word characters of a DBGet value, upper-cased ('pjsip' -> 'PJSIP')"""
    match = TECH_RE.match(value or "")
    return match.group(0).upper() if match else None


class CallOriginationWorkflow:
    """Places one call per request: validate, authorize, log in, look up, originate.

    Every outcome, including unexpected failures, ends up as a single CallResult.
    """

    def __init__(self, settings: Settings, matcher: Optional[AddressMatcher] = None,
                 session_factory: SessionFactory = default_session_factory):
        self.settings = settings
        self.matcher = matcher or AddressMatcher.from_strings(settings.allowed_ips)
        self.session_factory = session_factory

    def run(self, extension: Optional[str], number: Optional[str],
            client_address: Optional[str]) -> CallResult:
        request = CallRequest.from_raw(extension, number)
        try:
            request.validate()
            self._authorize(client_address)
        except InvalidInputError as e:
            logger.info(f"Rejected call request: {e}")
            return CallResult.failure(str(e), valid_input=False)
        except UnauthorizedError as e:
            logger.warning(f"Call request refused: {e}")
            return CallResult.failure(str(e))

        return self._place_call(request)

    def _place_call(self, request: CallRequest) -> CallResult:
        technology = ""
        originate_raw = ""
        session = None
        try:
            session = self._establish_session()

            technology = self._lookup_technology(session, request.extension)

            response = session.send_action(
                "Originate",
                Channel=f"{technology}/{request.extension}",
                WaitTime=self.settings.wait_time,
                CallerId=render_caller_id(self.settings.caller_id_template, request.number),
                Exten=request.number,
                Context=self.settings.context,
                Priority=self.settings.priority,
                Async="yes",
            )
            originate_raw = response.raw
            if not response.is_success:
                description = "Call initiation failed"
                if response.message:
                    description = f"{description}: {response.message}"
                raise OriginateError(description)

            logger.info(f"Originated call: {request.extension} -> {request.number} via {technology}")
            return CallResult(
                success=True,
                description=f"Extension {request.extension} is calling {request.number}.",
                technology=technology,
                originate_response_raw=originate_raw,
            )

        except ClickToCallError as e:
            logger.error(f"Failed to originate call {request.extension} -> {request.number}: {e}")
            return CallResult.failure(str(e), technology=technology, originate_response_raw=originate_raw)
        except Exception as e:
            logger.exception(f"Unexpected error while originating call {request.extension} -> {request.number}")
            return CallResult.failure(f"Unexpected error: {e}", technology=technology,
                                      originate_response_raw=originate_raw)
        finally:
            if session is not None:
                session.close()

    def _establish_session(self) -> ManagerSession:
        """Open and log in, retrying transport failures up to max_retry times"""
        attempts = 1 + self.settings.max_retry
        for attempt in range(1, attempts + 1):
            session = self.session_factory(self.settings)
            try:
                session.open()
                session.login(self.settings.manager_user, self.settings.manager_secret)
                return session
            except (ManagerConnectionError, ProtocolTimeoutError) as e:
                session.close()
                if attempt == attempts:
                    raise
                logger.warning(f"AMI connection attempt {attempt}/{attempts} failed: {e}")
            except Exception:
                session.close()
                raise

    def _authorize(self, client_address: Optional[str]):
        if not self.matcher.allows(client_address):
            raise UnauthorizedError(f"Unauthorized IP address: {client_address}")

    def _lookup_technology(self, session: ManagerSession, extension: str) -> str:
        technology = extract_technology(session.db_get(TECH_FAMILY, f"{extension}/tech"))
        if technology is None:
            raise TechnologyLookupError(f"Failed to retrieve technology for extension: {extension}")
        logger.info(f"Extension {extension} uses technology {technology}")
        return technology
