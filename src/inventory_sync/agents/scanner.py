"""Agent trade scanner -- per-agent adaptive polling on one shared timer.

Each scheduler tick:
  1. LOAD: Read all agent profiles
  2. COUNT DOWN: Advance every agent's countdown; collect the agents now due
  3. PULL: Fetch each due agent's trading systems over mutual TLS
  4. RESOLVE: Map remote systems to local ones by (owner, external ref) and
     resolve the exchange timezone
  5. PUBLISH: Translate each trade list and publish it as one message

Failure isolation: an unreachable agent only skips that agent; an
untranslatable trade only skips its trade list; an unknown system or
timezone only skips that remote system. A publish failure aborts the rest
of that agent's scan. Database failures abort the tick.
"""

from dataclasses import dataclass, field

from inventory_sync.agents.client import AgentClient
from inventory_sync.agents.translator import resolve_timezone, translate_trade_list
from inventory_sync.data.store import InventoryStore
from inventory_sync.exceptions import (
    AgentUnreachableError,
    PublishError,
    TimezoneResolutionError,
    TranslationError,
)
from inventory_sync.logging import get_logger
from inventory_sync.messaging.publisher import TRADE_TOPIC, MessagePublisher
from inventory_sync.models import AgentProfile, RemoteTradingSystem, TradeListMessage

logger = get_logger(__name__)


class AgentScanState:
    """Remaining ticks before each agent's next scan.

    An agent's countdown starts at its scan interval on the tick it is first
    seen and drops by one on every later tick; at zero the agent is scanned
    and the countdown restarts. Process-lifetime only: after a restart every
    agent starts a fresh countdown.

    Not thread-safe; owned by a single scan engine.
    """

    def __init__(self) -> None:
        self._countdowns: dict[int, int] = {}

    def advance(self, profile: AgentProfile) -> bool:
        """Advance one tick for ``profile``. Returns True when a scan is due."""
        interval = profile.scan_interval
        if interval < 1:
            # Scanning disabled for this agent
            self._countdowns.pop(profile.id, None)
            return False

        if profile.id not in self._countdowns:
            self._countdowns[profile.id] = interval
            return False

        # A shortened interval takes effect immediately
        remaining = min(self._countdowns[profile.id], interval) - 1
        if remaining <= 0:
            self._countdowns[profile.id] = interval
            return True

        self._countdowns[profile.id] = remaining
        return False

    def prune(self, active_ids: set[int]) -> None:
        """Forget agents that no longer exist."""
        for agent_id in list(self._countdowns):
            if agent_id not in active_ids:
                del self._countdowns[agent_id]

    def remaining(self, agent_id: int) -> int | None:
        return self._countdowns.get(agent_id)

    def snapshot(self) -> dict[int, int]:
        return dict(self._countdowns)


@dataclass
class ScanReport:
    """Outcome of one scan tick."""

    agents_seen: int = 0
    agents_scanned: list[int] = field(default_factory=list)
    agents_failed: dict[int, str] = field(default_factory=dict)
    systems_skipped: int = 0
    lists_published: int = 0
    lists_rejected: int = 0


class AgentScanEngine:
    """Polls due agents and publishes their translated trade lists.

    Args:
        store: Agent profile and trading system lookups.
        client: Mutual-TLS agent client.
        publisher: Message bus publisher.
        state: Countdown state; a fresh one is created if omitted.
        topic: Topic trade list messages are published to.
    """

    def __init__(
        self,
        store: InventoryStore,
        client: AgentClient,
        publisher: MessagePublisher,
        state: AgentScanState | None = None,
        topic: str = TRADE_TOPIC,
    ) -> None:
        self._store = store
        self._client = client
        self._publisher = publisher
        self._state = state if state is not None else AgentScanState()
        self._topic = topic

    @property
    def state(self) -> AgentScanState:
        return self._state

    async def tick(self) -> ScanReport:
        """Run one scheduler tick. PersistenceError propagates."""
        profiles = await self._store.get_agent_profiles()
        self._state.prune({profile.id for profile in profiles})

        report = ScanReport(agents_seen=len(profiles))
        due = [profile for profile in profiles if self._state.advance(profile)]

        for profile in due:
            try:
                await self.scan_agent(profile, report)
            except (AgentUnreachableError, PublishError) as e:
                report.agents_failed[profile.id] = str(e)
                logger.error(
                    "agent_scan_aborted",
                    agent_id=profile.id,
                    agent=profile.name,
                    username=profile.username,
                    **{k: v for k, v in e.context().items() if k not in ("agent_id", "agent")},
                )
            else:
                report.agents_scanned.append(profile.id)

        logger.info(
            "agent_scan_tick_done",
            agents=report.agents_seen,
            due=len(due),
            failed=len(report.agents_failed),
            published=report.lists_published,
            rejected=report.lists_rejected,
        )
        return report

    async def scan_agent(self, profile: AgentProfile, report: ScanReport | None = None) -> ScanReport:
        """Pull one agent and publish every translatable trade list.

        Raises AgentUnreachableError if the agent cannot be pulled and
        PublishError if the bus rejects a message.
        """
        report = report if report is not None else ScanReport(agents_seen=1)
        systems = await self._client.fetch_trading_systems(profile)

        for remote in systems:
            await self._process_remote_system(profile, remote, report)

        return report

    async def _process_remote_system(
        self,
        profile: AgentProfile,
        remote: RemoteTradingSystem,
        report: ScanReport,
    ) -> None:
        trading_system = await self._store.get_trading_system_by_ext_ref(
            profile.username, remote.name
        )
        if trading_system is None:
            report.systems_skipped += 1
            logger.warning(
                "trading_system_not_found",
                external_ref=remote.name,
                username=profile.username,
                agent=profile.name,
            )
            return

        try:
            tz = resolve_timezone(
                await self._store.get_trading_system_timezone(trading_system)
            )
        except TimezoneResolutionError as e:
            report.systems_skipped += 1
            logger.warning(
                "trading_system_timezone_unresolved",
                trading_system_id=trading_system.id,
                external_ref=remote.name,
                username=profile.username,
                **e.context(),
            )
            return

        for list_index, trade_list in enumerate(remote.trade_lists):
            try:
                trades = translate_trade_list(trade_list.trades, tz)
            except TranslationError as e:
                report.lists_rejected += 1
                logger.error(
                    "trade_list_rejected",
                    trading_system_id=trading_system.id,
                    external_ref=remote.name,
                    username=profile.username,
                    list_index=list_index,
                    **e.context(),
                )
                continue

            message = TradeListMessage(trading_system_id=trading_system.id, trades=trades)
            await self._publisher.publish(self._topic, message.to_payload())
            report.lists_published += 1
            logger.info(
                "trade_list_published",
                trading_system_id=trading_system.id,
                name=trading_system.name,
                username=trading_system.username,
                trades=len(trades),
            )
