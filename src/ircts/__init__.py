"""IRC test suite: protocol compliance checks for IRC servers."""

__version__ = "0.1.0"

# Line delimiter on the wire
LINE_DELIMITER = "\r\n"

# SASL numerics (IRCv3 sasl-3.1)
RPL_WELCOME = "001"
RPL_LOGGEDIN = "900"
RPL_SASLSUCCESS = "903"
SASL_FAILURE_NUMERICS = ("901", "902", "904", "905", "906", "907", "908")
