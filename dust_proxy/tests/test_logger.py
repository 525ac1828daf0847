import logging

from dust_proxy.infrastructure.logging.logger import resolve_level


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("WARNING") == logging.WARNING
    assert resolve_level("verbose") == logging.INFO
    assert resolve_level("") == logging.INFO
