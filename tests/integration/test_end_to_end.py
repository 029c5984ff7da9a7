"""
End-to-end flow: stream frame -> dispatcher -> pipeline -> buy.

Only the network edges are mocked (ledger lookup, report HTTP call,
Sniperoo HTTP call). Admission, history and the gate are real.
"""

from unittest.mock import AsyncMock

import pytest

from sniper_bot.admission import AdmissionRuleEngine, AdmissionSettings, RugCheckClient
from sniper_bot.core import ConcurrencyGate, IdentifierResolver, SnipePipeline
from sniper_bot.core.pipeline import CheckMode, PipelineSettings, PipelineStats
from sniper_bot.execution import SniperooClient
from sniper_bot.ingestion import EventDispatcher, SubscriptionRegistry

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


def rugcheck_payload(mint, name="Good Token", creator="Creator111"):
    return {
        "mint": mint,
        "creator": creator,
        "score": 1,
        "rugged": False,
        "token": {"mintAuthority": None, "freezeAuthority": None, "isInitialized": True},
        "tokenMeta": {"name": name, "symbol": "GOOD", "mutable": False},
        "topHolders": [{"address": "Holder1", "pct": 10.0, "insider": False}],
        "markets": [{"liquidityA": "VaultA", "liquidityB": "VaultB", "liquidity": 10000.0}],
        "totalLPProviders": 3,
    }


class InMemoryHistory:
    def __init__(self):
        self.records = []

    async def query(self, name, creator):
        return [r for r in self.records if r.name == name or r.creator == creator]

    async def insert(self, record):
        self.records.append(record)


@pytest.fixture
def rugcheck():
    client = RugCheckClient()
    client._request = AsyncMock(return_value=rugcheck_payload("MINTXYZ"))
    return client


@pytest.fixture
def sniperoo():
    client = SniperooClient(api_key="test-key", wallet_pubkey="Wallet111")
    client._request = AsyncMock(return_value={"success": True})
    return client


def build_dispatcher(ledger, executor, settings, engine=None, capacity=1):
    stats = PipelineStats()
    pipeline = SnipePipeline(
        IdentifierResolver(ledger, retry_delay=0),
        executor,
        settings,
        engine=engine,
        stats=stats,
    )
    return EventDispatcher(SubscriptionRegistry(), ConcurrencyGate(capacity), pipeline, stats)


class TestSnipeFlow:

    async def test_create_pool_event_buys_configured_amount(
        self, ledger, executor, create_pool_frame
    ):
        settings = PipelineSettings(check_mode=CheckMode.NONE, buy_amount_sol=0.25)
        dispatcher = build_dispatcher(ledger, executor, settings)

        task = await dispatcher.handle_message(create_pool_frame)
        await task

        ledger.get_transaction.assert_awaited_once_with("SIG123")
        executor.execute.assert_awaited_once()
        mint, amount = executor.execute.await_args.args[:2]
        assert (mint, amount) == ("MINTXYZ", 0.25)
        assert dispatcher.stats.executed == 1

    async def test_full_check_through_real_clients(
        self, ledger, rugcheck, sniperoo, create_pool_frame
    ):
        engine = AdmissionRuleEngine(
            AdmissionSettings(min_total_lp_providers=1, min_total_markets=1),
            history_store=InMemoryHistory(),
            report_source=rugcheck,
        )
        settings = PipelineSettings(
            buy_amount_sol=0.1, sell_enabled=True, take_profit_pct=30, stop_loss_pct=15
        )
        dispatcher = build_dispatcher(ledger, sniperoo, settings, engine=engine)

        await (await dispatcher.handle_message(create_pool_frame))

        sniperoo._request.assert_awaited_once()
        body = sniperoo._request.await_args.kwargs["json"]
        assert body["tokenAddress"] == "MINTXYZ"
        assert body["inputAmount"] == 0.1
        assert body["autoSell"]["enabled"] is True

    async def test_clean_token_executed_exactly_once(
        self, ledger, rugcheck, executor, create_pool_frame
    ):
        history = InMemoryHistory()
        engine = AdmissionRuleEngine(
            AdmissionSettings(min_total_lp_providers=1, min_total_markets=1),
            history_store=history,
            report_source=rugcheck,
        )
        settings = PipelineSettings(
            buy_amount_sol=0.1, sell_enabled=True, take_profit_pct=30, stop_loss_pct=15
        )
        dispatcher = build_dispatcher(ledger, executor, settings, engine=engine)

        await (await dispatcher.handle_message(create_pool_frame))

        executor.execute.assert_awaited_once_with("MINTXYZ", 0.1, True, 30, 15)
        assert [r.mint for r in history.records] == ["MINTXYZ"]
        assert dispatcher.stats.accepted == 1

    async def test_returning_name_is_not_bought_twice(
        self, ledger, rugcheck, executor, create_pool_frame
    ):
        engine = AdmissionRuleEngine(
            AdmissionSettings(min_total_lp_providers=1, min_total_markets=1),
            history_store=InMemoryHistory(),
            report_source=rugcheck,
        )
        dispatcher = build_dispatcher(ledger, executor, PipelineSettings(), engine=engine)

        await (await dispatcher.handle_message(create_pool_frame))
        rugcheck._request.return_value = rugcheck_payload("MINTABC", creator="Creator222")
        await (await dispatcher.handle_message(create_pool_frame))

        assert executor.execute.await_count == 1
        assert dispatcher.stats.rejected == 1

    async def test_busy_gate_drops_event(self, ledger, executor, create_pool_frame):
        settings = PipelineSettings(check_mode=CheckMode.NONE)
        dispatcher = build_dispatcher(ledger, executor, settings, capacity=1)

        first = await dispatcher.handle_message(create_pool_frame)
        second = await dispatcher.handle_message(create_pool_frame)
        await first

        assert second is None
        assert dispatcher.stats.dropped_busy == 1
        assert executor.execute.await_count == 1

    async def test_unmatched_logs_ignored(self, ledger, executor, create_pool_frame):
        create_pool_frame["params"]["result"]["value"]["logs"] = ["Program log: Instruction: Swap"]
        dispatcher = build_dispatcher(ledger, executor, PipelineSettings())

        assert await dispatcher.handle_message(create_pool_frame) is None
        ledger.get_transaction.assert_not_called()
