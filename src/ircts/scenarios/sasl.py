"""SASL authentication tests."""

import base64

from .. import RPL_LOGGEDIN, RPL_SASLSUCCESS, RPL_WELCOME, SASL_FAILURE_NUMERICS
from ..framework.transport import ConnectError, TransportError
from ..framework.wire import ParseError, WireError, parse_line
from .base import HandlerResult, RunManager, Test, TestGroup, TestReturn


def plain_credentials(username: str, password: str) -> str:
    """Base64 SASL PLAIN payload: authzid NUL authcid NUL password."""
    raw = b"\0".join([username.encode("utf-8"), username.encode("utf-8"), password.encode("utf-8")])
    return base64.b64encode(raw).decode("ascii")


def login_plain(name: str, rm: RunManager) -> HandlerResult:
    """Authenticate with SASL PLAIN and expect 900, 903, then 001."""
    if not rm.config.accounts:
        rm.results.set(name, TestReturn.NOT_APPLICABLE,
                       "No SASL PLAIN account (username+password) defined in config")
        return HandlerResult.DONE
    account = rm.config.accounts[0]

    try:
        c = rm.pool.new_connection(rm.config.server)
    except ConnectError as e:
        rm.results.set(name, TestReturn.FAILURE, f"Could not setup new connection: {e}")
        return HandlerResult.DONE

    try:
        try:
            if rm.config.server.password:
                c.send_simple_message("PASS", rm.config.server.password)
            c.send_simple_message("CAP", "REQ", "sasl")
            nick = rm.new_nick()
            c.send_simple_message("NICK", nick)
            c.set_nick(nick)
            c.send_simple_message("USER", "t", "0", "*", name)

            c.send_simple_message("AUTHENTICATE", "PLAIN")
            c.send_simple_message("AUTHENTICATE", plain_credentials(account.username, account.password))
            c.send_simple_message("CAP", "END")
        except (TransportError, WireError) as e:
            rm.results.set(name, TestReturn.FAILURE, f"Could not send registration: {e}", c.traffic)
            return HandlerResult.DONE

        got_900 = got_903 = False
        while True:
            try:
                line = c.get_line()
            except TransportError as e:
                rm.results.set(name, TestReturn.FAILURE, f"Could not get reply line: {e}", c.traffic)
                return HandlerResult.DONE

            try:
                msg = parse_line(line)
            except ParseError as e:
                rm.results.set(name, TestReturn.FAILURE, f"Failed to parse reply line: {e}", c.traffic)
                return HandlerResult.DONE

            if msg.command == RPL_WELCOME:
                if got_900 and got_903:
                    rm.results.set(name, TestReturn.SUCCESS,
                                   "Successfully completed SASL PLAIN (username+password) authentication",
                                   c.traffic)
                else:
                    rm.results.set(name, TestReturn.FAILURE,
                                   "RPL_WELCOME (001) encountered before SASL success numerics",
                                   c.traffic)
                return HandlerResult.DONE

            if msg.command == RPL_LOGGEDIN:
                got_900 = True
            elif msg.command == RPL_SASLSUCCESS:
                if not got_900:
                    rm.results.set(name, TestReturn.FAILURE,
                                   "Got RPL_SASLSUCCESS (903) before or without getting RPL_LOGGEDIN (900)",
                                   c.traffic)
                    return HandlerResult.DONE
                got_903 = True
            elif msg.command in SASL_FAILURE_NUMERICS:
                rm.results.set(name, TestReturn.FAILURE,
                               "Got unexpected SASL failure or informational numeric", c.traffic)
                return HandlerResult.DONE
    finally:
        rm.pool.destroy_connection(c)


LOGIN_PLAIN = Test(
    name="Login-PLAIN",
    description="Tests the SASL PLAIN authentication method.",
    handler=login_plain,
    required_caps=("sasl",),
)

SASL_TESTS = TestGroup(
    name="SASL",
    description="Tests SASL authentication methods.",
    tests=(LOGIN_PLAIN,),
)
