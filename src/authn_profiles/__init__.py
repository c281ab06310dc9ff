"""
authn_profiles — authentication profile trust policies for grid authorization.

Loads IGTF authentication profiles (*.info files) from a trust-anchors
directory and the VO-CA-AP policy file, and decides whether a certificate
issued by a given CA may be used, with or without a VO asserted.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable reload error handling.
"""

__version__ = "0.1.0"
