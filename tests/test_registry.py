"""Tests for the strategy registry."""

import pytest

from conftest import OWNER
from vaultcore.core.errors import (
    AllocationExceeded,
    InvalidAmount,
    StrategyAlreadyActive,
    StrategyMismatch,
    StrategyNotRegistered,
)
from vaultcore.core.token import AssetToken
from vaultcore.portfolio.registry import StrategyRegistry
from vaultcore.strategies.idle import IdleStrategy

VAULT = "0x00000000000000000000000000000000000fa017"


@pytest.fixture
def registry(token: AssetToken) -> StrategyRegistry:
    return StrategyRegistry(token, VAULT, token.journal)


@pytest.fixture
def make_strategy(token: AssetToken):
    def _make() -> IdleStrategy:
        return IdleStrategy(token, VAULT, OWNER)

    return _make


def _active_sum(registry: StrategyRegistry) -> int:
    return sum(info.target_allocation_bps for _, _, info in registry)


class TestRegistration:
    def test_add_records_weight(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()

        info = registry.add(strategy, 5000)

        assert info.target_allocation_bps == 5000
        assert info.total_deposited == 0
        assert info.is_active
        assert registry.total_allocation_bps == 5000
        assert registry.is_strategy(strategy.address)
        assert strategy.address in registry
        assert registry.get(strategy.address) is strategy
        assert registry.strategies() == [strategy.address]

    def test_add_twice_rejected(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 1000)

        with pytest.raises(StrategyAlreadyActive):
            registry.add(strategy, 1000)
        assert registry.total_allocation_bps == 1000

    def test_single_weight_over_limit(self, registry: StrategyRegistry, make_strategy) -> None:
        with pytest.raises(AllocationExceeded) as exc_info:
            registry.add(make_strategy(), 10_001)
        assert exc_info.value.requested_total == 10_001
        assert len(registry) == 0

    def test_aggregate_weight_over_limit(self, registry: StrategyRegistry, make_strategy) -> None:
        registry.add(make_strategy(), 6000)

        with pytest.raises(AllocationExceeded) as exc_info:
            registry.add(make_strategy(), 4001)

        assert exc_info.value.requested_total == 10_001
        assert registry.total_allocation_bps == 6000
        assert len(registry) == 1

    def test_full_allocation_allowed(self, registry: StrategyRegistry, make_strategy) -> None:
        registry.add(make_strategy(), 6000)
        registry.add(make_strategy(), 4000)
        assert registry.total_allocation_bps == 10_000

    @pytest.mark.parametrize("weight", [-1, 1.5, True])
    def test_invalid_weight(self, registry: StrategyRegistry, make_strategy, weight) -> None:
        with pytest.raises(InvalidAmount):
            registry.add(make_strategy(), weight)

    def test_asset_mismatch(self, registry: StrategyRegistry) -> None:
        other = AssetToken("Tether", "USDT")
        with pytest.raises(StrategyMismatch):
            registry.add(IdleStrategy(other, VAULT, OWNER), 1000)

    def test_vault_mismatch(self, registry: StrategyRegistry, token: AssetToken) -> None:
        foreign = IdleStrategy(token, "0x00000000000000000000000000000000000f0e19", OWNER)
        with pytest.raises(StrategyMismatch):
            registry.add(foreign, 1000)


class TestAllocationUpdates:
    def test_update_substitutes_old_weight(self, registry: StrategyRegistry, make_strategy) -> None:
        a, b = make_strategy(), make_strategy()
        registry.add(a, 5000)
        registry.add(b, 3000)

        previous = registry.update_allocation(a.address, 7000)

        assert previous == 5000
        assert registry.total_allocation_bps == 10_000
        assert registry.info(a.address).target_allocation_bps == 7000
        assert _active_sum(registry) == registry.total_allocation_bps

    def test_update_over_limit_rejected(self, registry: StrategyRegistry, make_strategy) -> None:
        a, b = make_strategy(), make_strategy()
        registry.add(a, 5000)
        registry.add(b, 3000)

        with pytest.raises(AllocationExceeded):
            registry.update_allocation(a.address, 7001)

        assert registry.info(a.address).target_allocation_bps == 5000
        assert registry.total_allocation_bps == 8000

    def test_update_unknown_strategy(self, registry: StrategyRegistry) -> None:
        with pytest.raises(StrategyNotRegistered):
            registry.update_allocation("0x00000000000000000000000000000000000ba0ba", 100)


class TestRemoval:
    def test_remove_swaps_last_into_place(self, registry: StrategyRegistry, make_strategy) -> None:
        a, b, c = make_strategy(), make_strategy(), make_strategy()
        for strategy in (a, b, c):
            registry.add(strategy, 2000)

        removed = registry.remove(a.address)

        assert removed.target_allocation_bps == 2000
        assert registry.strategies() == [c.address, b.address]
        assert registry.total_allocation_bps == 4000
        assert not registry.is_strategy(a.address)
        assert not registry.info(a.address).is_active
        with pytest.raises(StrategyNotRegistered):
            registry.get(a.address)

    def test_removed_strategy_can_return(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 2000)
        registry.remove(strategy.address)

        registry.add(strategy, 3000)

        assert registry.is_strategy(strategy.address)
        assert registry.total_allocation_bps == 3000

    def test_remove_unknown(self, registry: StrategyRegistry) -> None:
        with pytest.raises(StrategyNotRegistered):
            registry.remove("0x00000000000000000000000000000000000ba0ba")

    def test_info_of_unknown(self, registry: StrategyRegistry) -> None:
        with pytest.raises(StrategyNotRegistered):
            registry.info("0x00000000000000000000000000000000000ba0ba")


class TestBookkeeping:
    def test_record_deposit_and_withdrawal(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 5000)

        assert registry.record_deposit(strategy.address, 700) == 700
        assert registry.record_withdrawal(strategy.address, 200) == 500

    def test_record_withdrawal_clamps_at_zero(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 5000)
        registry.record_deposit(strategy.address, 100)

        assert registry.record_withdrawal(strategy.address, 150) == 0

    def test_set_recorded(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 5000)

        registry.set_recorded(strategy.address, 1234)

        assert registry.info(strategy.address).total_deposited == 1234

    def test_info_is_a_copy(self, registry: StrategyRegistry, make_strategy) -> None:
        strategy = make_strategy()
        registry.add(strategy, 5000)

        registry.info(strategy.address).total_deposited = 99

        assert registry.info(strategy.address).total_deposited == 0

    def test_changes_roll_back_with_the_journal(
        self, registry: StrategyRegistry, make_strategy, token: AssetToken
    ) -> None:
        strategy = make_strategy()

        with pytest.raises(RuntimeError):
            with token.journal.atomic():
                registry.add(strategy, 5000)
                registry.record_deposit(strategy.address, 10)
                raise RuntimeError("abort")

        assert len(registry) == 0
        assert registry.total_allocation_bps == 0
        assert not registry.is_strategy(strategy.address)
