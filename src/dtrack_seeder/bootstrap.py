"""Credential bootstrap: admin login, first-launch password change, API key."""

from __future__ import annotations

import logging

from .client import APIError, DependencyTrackClient, Team, fetch_all
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

ADMIN_TEAM = "Administrators"
DEFAULT_USERNAME = "admin"
# Password every fresh Dependency-Track instance ships with.
INITIAL_PASSWORD = "admin"


async def login(client: DependencyTrackClient, username: str, password: str) -> str:
    """Log in, rotating the factory password when the server demands it."""

    logger.info("authenticating")
    try:
        return await client.login(username, password)
    except APIError as exc:
        if exc.status_code != 401:
            raise AuthenticationError(
                f"failed to authenticate: {exc}",
                operation="login",
                identifier=username,
                status_code=exc.status_code,
            ) from exc

    logger.info("probably first launch, changing admin password")
    try:
        await client.force_change_password(username, INITIAL_PASSWORD, password)
    except APIError as exc:
        raise AuthenticationError(
            f"failed to change admin password: {exc}",
            operation="force_change_password",
            identifier=username,
            status_code=exc.status_code,
        ) from exc

    logger.info("re-attempting login")
    try:
        return await client.login(username, password)
    except APIError as exc:
        raise AuthenticationError(
            f"failed to authenticate: {exc}",
            operation="login",
            identifier=username,
            status_code=exc.status_code,
        ) from exc


async def provision_api_key(client: DependencyTrackClient) -> str:
    """Return an API key of the administrators team, generating one if it has none."""

    logger.info("fetching teams")
    try:
        teams: list[Team] = await fetch_all(client.get_teams)
    except APIError as exc:
        raise AuthenticationError(
            f"failed to get teams: {exc}", operation="get_teams", status_code=exc.status_code
        ) from exc

    logger.info("looking for admin team")
    admin_team = next((team for team in teams if team.name == ADMIN_TEAM), None)
    if admin_team is None:
        raise AuthenticationError("unable to find admin team", operation="get_teams")

    if admin_team.api_keys:
        logger.info("reusing existing api key")
        return admin_team.api_keys[0]

    logger.info("generating api key")
    try:
        return await client.generate_api_key(admin_team.uuid)
    except (APIError, KeyError) as exc:
        raise AuthenticationError(
            f"failed to generate api key: {exc}",
            operation="generate_api_key",
            identifier=admin_team.uuid,
            status_code=getattr(exc, "status_code", None),
        ) from exc


async def authenticate(
    client: DependencyTrackClient,
    password: str,
    *,
    username: str = DEFAULT_USERNAME,
) -> DependencyTrackClient:
    """Run the full handshake and return a new client authenticated by API key.

    The intermediate bearer-token client is closed before returning; ``client``
    itself is left to the caller.
    """

    token = await login(client, username, password)
    async with client.with_bearer_token(token) as bearer_client:
        api_key = await provision_api_key(bearer_client)
    return client.with_api_key(api_key)


__all__ = ["ADMIN_TEAM", "authenticate", "login", "provision_api_key"]
