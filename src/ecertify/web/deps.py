"""Shared request dependencies."""

from fastapi import Header

from ecertify.core.container import Services, get_services


def services() -> Services:
    """Services for the current process."""
    return get_services()


async def actor_address(x_wallet_address: str = Header(..., min_length=1)) -> str:
    """Wallet address of the caller, taken from the X-Wallet-Address header."""
    return x_wallet_address
