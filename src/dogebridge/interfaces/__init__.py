"""Protocol interfaces for dogebridge components."""

from dogebridge.interfaces.poller import ContractEvent, EventPoller
from dogebridge.interfaces.settlement import SettlementChain
from dogebridge.interfaces.source import SourceChainRpc
from dogebridge.interfaces.store import StateStore

__all__ = [
    "EventPoller", "ContractEvent",
    "SettlementChain",
    "SourceChainRpc",
    "StateStore",
]
