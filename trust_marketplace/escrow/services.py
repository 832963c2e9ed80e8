import json
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from investments.models import Investment
from trust_marketplace.exceptions import (
    ConflictError,
    InvalidStateError,
    NotAuthorized,
    NotFound,
    ValidationFailed,
)
from .apps import get_escrow_ledger
from .contract import (
    ESCROW_ACTIVATED,
    ESCROW_CANCELLED,
    ESCROW_REFUNDED,
    ESCROW_RELEASED,
    EscrowNotFound,
    EscrowRevert,
    EscrowState,
    UnauthorizedCaller,
)
from .models import EscrowContract, EscrowEvent

logger = logging.getLogger(__name__)

DEFAULT_RELEASE_CONDITIONS = {'milestone': 'Project completion', 'percentage': 100}

# Mirror status each contract event moves the row to.
EVENT_STATUSES = {
    ESCROW_ACTIVATED: EscrowContract.ACTIVE,
    ESCROW_RELEASED: EscrowContract.RELEASED,
    ESCROW_REFUNDED: EscrowContract.REFUNDED,
    ESCROW_CANCELLED: EscrowContract.CANCELLED,
}

CHAIN_STATUSES = {
    EscrowState.CREATED: EscrowContract.PENDING,
    EscrowState.ACTIVE: EscrowContract.ACTIVE,
    EscrowState.RELEASED: EscrowContract.RELEASED,
    EscrowState.REFUNDED: EscrowContract.REFUNDED,
    EscrowState.CANCELLED: EscrowContract.CANCELLED,
}

MIRROR_TRANSITIONS = {
    EscrowContract.PENDING: {EscrowContract.ACTIVE, EscrowContract.REFUNDED, EscrowContract.CANCELLED},
    EscrowContract.ACTIVE: {EscrowContract.RELEASED, EscrowContract.REFUNDED},
}

# Investment status that follows a settled escrow.
INVESTMENT_STATUSES = {
    EscrowContract.RELEASED: Investment.RELEASED,
    EscrowContract.REFUNDED: Investment.REFUNDED,
    EscrowContract.CANCELLED: Investment.REFUNDED,
}


def to_minor_units(amount):
    return int((Decimal(amount) * 100).to_integral_value())


def translate_revert(revert):
    """Map a contract revert onto the API error it should surface as."""
    if isinstance(revert, UnauthorizedCaller):
        return NotAuthorized(revert.reason)
    if isinstance(revert, EscrowNotFound):
        return NotFound(revert.reason)
    return InvalidStateError(f"Escrow contract rejected the call: {revert.reason}")


class EscrowService:
    """
    Keeps EscrowContract rows in step with the escrow contract.

    Mirror status only changes through ``apply_chain_event``, after the event
    has been checked against the contract's own log.
    """

    def __init__(self, ledger=None):
        self.ledger = ledger or get_escrow_ledger()

    # -- queries -------------------------------------------------------------

    @staticmethod
    def visible_to(user):
        queryset = EscrowContract.objects.select_related('investment', 'investment__investor', 'project')
        if user.is_staff:
            return queryset
        return queryset.filter(Q(investment__investor=user) | Q(project__fundraiser=user))

    def get_escrow_for_user(self, user, escrow_id):
        escrow = self.visible_to(user).filter(pk=escrow_id).first()
        if escrow is None:
            raise NotFound("Escrow not found")
        return escrow

    def get_by_investment(self, user, investment_id):
        escrow = self.visible_to(user).filter(investment_id=investment_id).first()
        if escrow is None:
            raise NotFound("No escrow exists for this investment")
        return escrow

    # -- creation ------------------------------------------------------------

    def create_escrow_record(self, *, investment, contract_address, amount, release_conditions, chain_escrow_id=None):
        """Persist the mirror row for an investment that has just become ESCROWED."""
        if investment.status != Investment.ESCROWED:
            raise InvalidStateError("Escrow records are only created for escrowed investments")
        if EscrowContract.objects.filter(investment=investment).exists():
            raise ConflictError("Investment already has an escrow contract")
        if Decimal(amount) != investment.amount:
            raise ValidationFailed("Escrow amount must equal the investment amount")

        escrow = EscrowContract.objects.create(
            investment=investment,
            project_id=investment.project_id,
            contract_address=contract_address,
            chain_escrow_id=chain_escrow_id,
            amount=amount,
            status=EscrowContract.ACTIVE,
            release_conditions=release_conditions,
        )
        logger.info("Escrow record %s created for investment %s", escrow.id, investment.id)
        return escrow

    def open_escrow(self, investment, release_conditions=None):
        """
        Fund an escrow on the contract for ``investment`` and mirror it.

        The platform holds custody for both parties, so it approves on behalf
        of the investor and the fundraiser and the escrow is ACTIVE on return.
        If the mirror cannot be written the on-chain escrow is refunded.
        """
        conditions = release_conditions or DEFAULT_RELEASE_CONDITIONS
        depositor = investment.investor.chain_address
        beneficiary = investment.project.fundraiser.chain_address

        try:
            chain_escrow_id, events = self.ledger.create_escrow(
                depositor,
                beneficiary,
                json.dumps(conditions, sort_keys=True),
                value=to_minor_units(investment.amount),
            )
            events += self.ledger.activate_escrow(depositor, chain_escrow_id)
            events += self.ledger.activate_escrow(beneficiary, chain_escrow_id)
        except EscrowRevert as revert:
            logger.error("Opening escrow for investment %s failed: %s", investment.id, revert.reason)
            raise translate_revert(revert)

        try:
            with transaction.atomic():
                escrow = self.create_escrow_record(
                    investment=investment,
                    contract_address=self.ledger.address,
                    chain_escrow_id=chain_escrow_id,
                    amount=investment.amount,
                    release_conditions=conditions,
                )
                for event in events:
                    self._record_event(escrow, event)
        except Exception:
            logger.error("Mirroring escrow %s failed; refunding on chain", chain_escrow_id)
            self.ledger.refund(depositor, chain_escrow_id)
            raise
        return escrow

    # -- lifecycle -----------------------------------------------------------

    @transaction.atomic
    def release(self, user, escrow_id):
        escrow = self._lock_for_user(user, escrow_id)
        if escrow.is_locked:
            raise InvalidStateError("Escrow is locked due to dispute")
        if escrow.status != EscrowContract.ACTIVE:
            raise InvalidStateError(f"Only active escrows can be released (status: {escrow.status})")

        sender = self._sender_for(user, escrow)
        try:
            events = self.ledger.release(sender, escrow.chain_escrow_id)
        except EscrowRevert as revert:
            raise translate_revert(revert)

        for event in events:
            escrow = self.apply_chain_event(event)
        return escrow

    @transaction.atomic
    def refund(self, user, escrow_id):
        escrow = self._lock_for_user(user, escrow_id)
        if escrow.status not in (EscrowContract.PENDING, EscrowContract.ACTIVE):
            raise InvalidStateError(f"Escrow cannot be refunded (status: {escrow.status})")
        if escrow.is_locked and not user.is_staff:
            raise NotAuthorized("Escrow is under dispute; only the platform arbiter can refund it")

        sender = self._sender_for(user, escrow)
        try:
            events = self.ledger.refund(sender, escrow.chain_escrow_id)
        except EscrowRevert as revert:
            raise translate_revert(revert)

        for event in events:
            escrow = self.apply_chain_event(event)
        return escrow

    @transaction.atomic
    def raise_dispute(self, user, escrow_id, reason):
        escrow = self._lock_for_user(user, escrow_id)
        if escrow.status != EscrowContract.ACTIVE:
            raise InvalidStateError("Only active escrows can be disputed")
        if escrow.is_locked:
            raise ConflictError("Escrow is already under dispute")

        escrow.is_locked = True
        escrow.dispute_reason = reason
        escrow.save(update_fields=['is_locked', 'dispute_reason', 'updated_at'])
        logger.info("Escrow %s locked by dispute from user %s", escrow.id, user.id)
        return escrow

    @transaction.atomic
    def set_lock(self, escrow_id, locked):
        escrow = EscrowContract.objects.select_for_update().filter(pk=escrow_id).first()
        if escrow is None:
            raise NotFound("Escrow not found")
        escrow.is_locked = locked
        if not locked:
            escrow.dispute_reason = ''
        escrow.save(update_fields=['is_locked', 'dispute_reason', 'updated_at'])
        return escrow

    # -- chain events --------------------------------------------------------

    @transaction.atomic
    def apply_chain_event(self, event):
        """
        Apply one contract event to its mirror row.

        Events not found in the contract log are rejected. Replays of an
        already applied event are no-ops.
        """
        if not self.ledger.verify_event(event):
            logger.warning("Rejected unverified escrow event %s at %s", event.name, event.tx_hash)
            raise ValidationFailed("Event was not emitted by the escrow contract")

        escrow = (
            EscrowContract.objects.select_for_update()
            .select_related('investment')
            .filter(contract_address=self.ledger.address, chain_escrow_id=event.escrow_id)
            .first()
        )
        if escrow is None:
            raise NotFound("No escrow record mirrors this contract escrow")
        if EscrowEvent.objects.filter(tx_hash=event.tx_hash, log_index=event.log_index).exists():
            return escrow

        new_status = EVENT_STATUSES.get(event.name)
        if new_status and new_status != escrow.status:
            if new_status not in MIRROR_TRANSITIONS.get(escrow.status, set()):
                raise InvalidStateError(f"Escrow cannot move from {escrow.status} to {new_status}")
            if new_status != EscrowContract.ACTIVE:
                on_chain = CHAIN_STATUSES[self.ledger.get_escrow(event.escrow_id).state]
                if on_chain != new_status:
                    raise InvalidStateError("Event does not match the contract's current state")
            self._move_to(escrow, new_status)

        self._record_event(escrow, event)
        return escrow

    def sync_escrow(self, escrow_id):
        escrow = EscrowContract.objects.select_related('investment').filter(pk=escrow_id).first()
        if escrow is None:
            raise NotFound("Escrow not found")
        return self.sync_from_chain(escrow)

    def sync_from_chain(self, escrow):
        """Apply every contract event for ``escrow`` the mirror has not seen yet."""
        for event in self.ledger.events(escrow_id=escrow.chain_escrow_id):
            escrow = self.apply_chain_event(event)
        return escrow

    # -- internals -----------------------------------------------------------

    def _move_to(self, escrow, new_status):
        escrow.status = new_status
        if new_status == EscrowContract.RELEASED:
            escrow.released_at = timezone.now()
        elif new_status in (EscrowContract.REFUNDED, EscrowContract.CANCELLED):
            escrow.refunded_at = timezone.now()
        escrow.save(update_fields=['status', 'released_at', 'refunded_at', 'updated_at'])

        investment_status = INVESTMENT_STATUSES.get(new_status)
        if investment_status and escrow.investment.status != investment_status:
            escrow.investment.transition_to(investment_status)
        logger.info("Escrow %s is now %s", escrow.id, new_status)

    @staticmethod
    def _record_event(escrow, event):
        return EscrowEvent.objects.create(
            escrow=escrow,
            name=event.name,
            tx_hash=event.tx_hash,
            log_index=event.log_index,
            block_number=event.block_number,
            args=event.args,
        )

    def _lock_for_user(self, user, escrow_id):
        escrow = self.visible_to(user).select_for_update(of=('self',)).filter(pk=escrow_id).first()
        if escrow is None:
            raise NotFound("Escrow not found")
        return escrow

    def _sender_for(self, user, escrow):
        """Chain address the platform signs with on behalf of ``user``."""
        if escrow.investment.investor_id == user.id:
            return user.chain_address
        if user.is_staff:
            if not self.ledger.arbiter:
                raise NotAuthorized("No escrow arbiter is configured")
            return self.ledger.arbiter
        raise NotAuthorized("Only the investor or the platform arbiter can move escrowed funds")
