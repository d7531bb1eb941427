"""Mutually-authenticated HTTP client for remote trading agents.

Each agent has its own client certificate/key pair; all agents are verified
against one shared CA bundle. A fresh TLS context and session are built per
scan so rotated certificate files are picked up without a restart.
"""

import asyncio
import os
import ssl
from collections.abc import Callable

import aiohttp
from pydantic import TypeAdapter, ValidationError

from inventory_sync.config import AgentSettings
from inventory_sync.exceptions import AgentUnreachableError
from inventory_sync.logging import get_logger
from inventory_sync.models import AgentProfile, RemoteTradingSystem

logger = get_logger(__name__)

_TRADING_SYSTEMS = TypeAdapter(list[RemoteTradingSystem])

SessionFactory = Callable[[ssl.SSLContext, aiohttp.ClientTimeout], aiohttp.ClientSession]


def build_ssl_context(cert_path: str, key_path: str, ca_path: str) -> ssl.SSLContext:
    """Client TLS context presenting the agent certificate, trusting only the CA.

    Raises OSError / ssl.SSLError when the material cannot be loaded.
    """
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=ca_path)
    context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    return context


def parse_trading_systems(payload: object) -> list[RemoteTradingSystem]:
    """Validate an agent payload. Raises pydantic ValidationError."""
    return _TRADING_SYSTEMS.validate_python(payload)


def _default_session(context: ssl.SSLContext, timeout: aiohttp.ClientTimeout) -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        connector=aiohttp.TCPConnector(ssl=context),
        timeout=timeout,
    )


class AgentClient:
    """Pulls reported trading systems from agents.

    Args:
        settings: Certificate locations and request timeout.
        session_factory: Builds a session bound to a TLS context (tests inject fakes).
    """

    def __init__(
        self,
        settings: AgentSettings,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory or _default_session

    def ssl_context_for(self, profile: AgentProfile) -> ssl.SSLContext:
        """Load the agent's certificate material. Raises AgentUnreachableError."""
        cert_dir = self._settings.cert_dir
        cert_path = os.path.join(cert_dir, profile.ssl_cert_ref)
        key_path = os.path.join(cert_dir, profile.ssl_key_ref)
        ca_path = os.path.join(cert_dir, self._settings.ca_file)

        try:
            return build_ssl_context(cert_path, key_path, ca_path)
        except (OSError, ssl.SSLError) as e:
            raise AgentUnreachableError(
                f"Cannot load certificate material (cert={cert_path}, key={key_path}, "
                f"ca={ca_path}): {e}",
                agent_id=profile.id,
                agent=profile.name,
            ) from e

    async def fetch_trading_systems(self, profile: AgentProfile) -> list[RemoteTradingSystem]:
        """GET the agent's remote URL and return its trading systems.

        Raises AgentUnreachableError on TLS setup failure, network failure,
        timeout, non-success status or malformed payload.
        """
        context = self.ssl_context_for(profile)
        timeout = aiohttp.ClientTimeout(total=self._settings.timeout_seconds)

        def unreachable(message: str) -> AgentUnreachableError:
            return AgentUnreachableError(message, agent_id=profile.id, agent=profile.name)

        try:
            async with self._session_factory(context, timeout) as session:
                async with session.get(
                    profile.remote_url, headers={"Accept": "application/json"}
                ) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise unreachable(f"Agent returned HTTP {resp.status}: {body[:200]}")
                    payload = await resp.json(content_type=None)
        except AgentUnreachableError:
            raise
        except asyncio.TimeoutError as e:
            raise unreachable("Agent request timed out") from e
        except aiohttp.ClientError as e:
            raise unreachable(f"Agent request failed: {e}") from e
        except ValueError as e:
            raise unreachable(f"Agent returned invalid JSON: {e}") from e

        try:
            systems = parse_trading_systems(payload)
        except ValidationError as e:
            raise unreachable(f"Agent returned malformed trading systems: {e}") from e

        logger.info(
            "agent_trades_retrieved",
            agent=profile.name,
            username=profile.username,
            systems=len(systems),
        )
        return systems
