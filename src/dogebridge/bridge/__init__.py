"""Bridge relay: withdrawal processing and deposit-to-mint orchestration."""

from dogebridge.bridge.orchestrator import BridgeOrchestrator, deposit_id_for
from dogebridge.bridge.withdrawal_monitor import WithdrawalMonitor
from dogebridge.bridge.withdrawals import WithdrawalProcessor

__all__ = ["BridgeOrchestrator", "deposit_id_for", "WithdrawalMonitor", "WithdrawalProcessor"]
