"""
Network utilities - HTTP session factory for outbound calls
"""
import aiohttp


def create_aiohttp_session(**kwargs) -> aiohttp.ClientSession:
    """
    Create an aiohttp ClientSession.

    Args:
        **kwargs: Additional arguments for ClientSession

    Returns:
        Configured aiohttp.ClientSession
    """
    kwargs.setdefault("raise_for_status", False)
    return aiohttp.ClientSession(**kwargs)
