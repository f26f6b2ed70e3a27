"""
Position event monitor.

Reads the manager's event log from where the previous check stopped and
logs the events a risk desk watches: new sponsors, slow withdrawal
requests, position transfers, expiry and emergency shutdown.
"""

from typing import List, Optional

from ..position_manager import events as ev
from ..utils.helpers import format_amount
from ..utils.logger import SynthLogger, get_logger
from .config import ContractProps

AT = "PositionEventMonitor"


class PositionEventMonitor:
    """
    Usage:
        monitor = PositionEventMonitor(manager.events, ContractProps.from_manager(manager))
        monitor.check_for_new_events()
    """

    def __init__(
        self,
        event_log: ev.EventLog,
        contract_props: ContractProps,
        logger: Optional[SynthLogger] = None,
    ):
        self.event_log = event_log
        self.contract_props = contract_props
        self.logger = logger or get_logger()
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def check_for_new_events(self) -> List[ev.Event]:
        """
        Log every watched event committed since the last check.

        Returns:
            The watched events that were logged
        """
        new_events = self.event_log.since(self._cursor)
        self._cursor += len(new_events)
        self.logger.debug(f"[{AT}] {len(new_events)} new event(s), cursor={self._cursor}")

        reported = []
        for event in new_events:
            if self._report(event):
                reported.append(event)
        return reported

    def _report(self, event: ev.Event) -> bool:
        collateral = self.contract_props.collateral_symbol
        if isinstance(event, ev.NewSponsor):
            self.logger.alert(AT, "New sponsor", level="info", sponsor=event.sponsor)
        elif isinstance(event, ev.RequestWithdrawal):
            self.logger.alert(
                AT,
                "Withdrawal request",
                level="info",
                sponsor=event.sponsor,
                amount=f"{format_amount(event.collateral_amount)} {collateral}",
            )
        elif isinstance(event, ev.RequestTransferPosition):
            self.logger.alert(AT, "Position transfer request", level="info", sponsor=event.old_sponsor)
        elif isinstance(event, ev.RequestTransferPositionExecuted):
            self.logger.alert(
                AT,
                "Position transferred",
                level="info",
                old_sponsor=event.old_sponsor,
                new_sponsor=event.new_sponsor,
            )
        elif isinstance(event, ev.ContractExpired):
            self.logger.alert(AT, "Contract expired", caller=event.caller)
        elif isinstance(event, ev.EmergencyShutdown):
            self.logger.alert(
                AT,
                "Emergency shutdown",
                caller=event.caller,
                original_expiration=event.original_expiration_timestamp,
                shutdown=event.shutdown_timestamp,
            )
        else:
            return False
        return True
