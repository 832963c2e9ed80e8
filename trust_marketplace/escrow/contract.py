"""
The escrow smart contract.

One ledger stands for one deployed escrow contract. It holds deposits,
tracks per-party approvals and moves funds on release/refund/cancel exactly as
the contract does:

    CREATED(0) -> ACTIVE(1) -> RELEASED(2)
        |            |
        |            +------> REFUNDED(3)
        +--> REFUNDED(3)
        +--> CANCELLED(4)

Every state change appends an event to the log. Events carry a synthetic block
number and transaction hash so off-chain mirrors can prove that a transition
really happened before acting on it. All amounts are integer minor units and
are checked against the uint256 range.

Contract storage is kept in the database (escrow.models Ledger* tables), so
the contract outlives process restarts and is shared by every worker.
"""
import hashlib
import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Optional

from django.db import transaction

from .models import LedgerCredit, LedgerEscrow, LedgerLog, LedgerState

logger = logging.getLogger(__name__)

UINT256_MAX = 2 ** 256 - 1
ZERO_ADDRESS = '0x' + '0' * 40
_ADDRESS_RE = re.compile(r'^0x[0-9a-f]{40}$')

ESCROW_CREATED = 'EscrowCreated'
ESCROW_APPROVED = 'EscrowApproved'
ESCROW_ACTIVATED = 'EscrowActivated'
ESCROW_RELEASED = 'EscrowReleased'
ESCROW_REFUNDED = 'EscrowRefunded'
ESCROW_CANCELLED = 'EscrowCancelled'


class EscrowState(IntEnum):
    CREATED = 0
    ACTIVE = 1
    RELEASED = 2
    REFUNDED = 3
    CANCELLED = 4


TERMINAL_STATES = frozenset({EscrowState.RELEASED, EscrowState.REFUNDED, EscrowState.CANCELLED})


class EscrowRevert(Exception):
    """A call the contract rejects. Nothing the call touched is changed."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class UnauthorizedCaller(EscrowRevert):
    pass


class InvalidEscrowState(EscrowRevert):
    pass


class EscrowNotFound(EscrowRevert):
    pass


class EscrowView(NamedTuple):
    escrow_id: int
    depositor: str
    beneficiary: str
    amount: int
    release_conditions: str
    state: EscrowState
    depositor_approved: bool
    beneficiary_approved: bool
    created_at: int


@dataclass(frozen=True)
class ChainEvent:
    name: str
    escrow_id: int
    args: dict
    block_number: int
    tx_hash: str
    log_index: int


def _view(escrow):
    return EscrowView(
        escrow_id=escrow.escrow_id,
        depositor=escrow.depositor,
        beneficiary=escrow.beneficiary,
        amount=escrow.amount,
        release_conditions=escrow.release_conditions,
        state=EscrowState(escrow.state),
        depositor_approved=escrow.depositor_approved,
        beneficiary_approved=escrow.beneficiary_approved,
        created_at=escrow.created_at,
    )


def _event(log):
    return ChainEvent(
        name=log.name,
        escrow_id=log.escrow_id,
        args=dict(log.args),
        block_number=log.block_number,
        tx_hash=log.tx_hash,
        log_index=log.log_index,
    )


def normalize_address(address):
    if not isinstance(address, str):
        return None
    candidate = address.strip().lower()
    return candidate if _ADDRESS_RE.match(candidate) else None


def checked_add(a, b):
    result = a + b
    if result > UINT256_MAX:
        raise EscrowRevert("arithmetic overflow")
    return result


def checked_sub(a, b):
    if b > a:
        raise EscrowRevert("arithmetic underflow")
    return a - b


class EscrowLedger:
    """
    Handle on one deployed escrow contract.

    Contract storage lives in the Ledger* tables so every process sees the same
    escrows, balances and event log. Each write runs in its own atomic block
    with the contract's LedgerState row locked, standing in for the chain's
    global transaction ordering. A revert rolls the block back.
    """

    def __init__(self, address, arbiter=None):
        normalized = normalize_address(address)
        if normalized is None:
            raise ValueError(f"Invalid contract address: {address!r}")
        self.address = normalized
        self.arbiter = normalize_address(arbiter) if arbiter else None
        self._entered = False

    # -- reads ---------------------------------------------------------------

    def get_escrow(self, escrow_id) -> EscrowView:
        return _view(self._require(escrow_id))

    def escrow_count(self):
        return self._state().next_escrow_id - 1

    @property
    def held_balance(self):
        return self._state().held

    def balance_of(self, address):
        """Funds paid out of escrow to ``address``."""
        credit = LedgerCredit.objects.filter(
            contract_address=self.address, account=normalize_address(address)
        ).first()
        return credit.amount if credit else 0

    def events(self, since_block=0, escrow_id=None):
        logs = LedgerLog.objects.filter(contract_address=self.address, block_number__gt=since_block)
        if escrow_id is not None:
            logs = logs.filter(escrow_id=escrow_id)
        return [_event(log) for log in logs.order_by('block_number', 'log_index')]

    def get_event(self, tx_hash, log_index=None) -> Optional[ChainEvent]:
        logs = LedgerLog.objects.filter(contract_address=self.address, tx_hash=tx_hash)
        if log_index is not None:
            logs = logs.filter(log_index=log_index)
        log = logs.order_by('log_index').first()
        return _event(log) if log else None

    def verify_event(self, event):
        """True when ``event`` was emitted by this contract exactly as given."""
        return self.get_event(event.tx_hash, event.log_index) == event

    # -- writes --------------------------------------------------------------

    def create_escrow(self, sender, beneficiary, release_conditions='', value=0):
        """
        Open a new escrow funded with ``value`` from ``sender``.
        Returns ``(escrow_id, events)``.
        """
        with self._call() as state:
            depositor = self._require_address(sender, "invalid depositor")
            beneficiary_address = normalize_address(beneficiary)
            if beneficiary_address is None or beneficiary_address == ZERO_ADDRESS:
                raise EscrowRevert("invalid beneficiary")
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise EscrowRevert("amount must be greater than zero")
            if value > UINT256_MAX:
                raise EscrowRevert("arithmetic overflow")

            state.held = checked_add(state.held, value)
            escrow_id = state.next_escrow_id
            state.next_escrow_id += 1
            LedgerEscrow.objects.create(
                contract_address=self.address,
                escrow_id=escrow_id,
                depositor=depositor,
                beneficiary=beneficiary_address,
                amount=value,
                release_conditions=release_conditions or '',
                state=EscrowState.CREATED,
                created_at=int(time.time()),
            )

            events = self._commit(state, escrow_id, [
                (ESCROW_CREATED, {
                    'escrowId': escrow_id,
                    'depositor': depositor,
                    'beneficiary': beneficiary_address,
                    'amount': value,
                }),
            ])
            logger.info("Escrow %s created by %s for %s (amount=%s)", escrow_id, depositor, beneficiary_address, value)
            return escrow_id, events

    def activate_escrow(self, sender, escrow_id):
        """
        Record ``sender``'s approval. Once both parties have approved the escrow
        becomes ACTIVE. Repeated approvals from the same party are no-ops.
        """
        with self._call() as state:
            escrow = self._require(escrow_id, for_update=True)
            caller = normalize_address(sender)
            if caller not in (escrow.depositor, escrow.beneficiary):
                raise UnauthorizedCaller("caller is not a party to this escrow")
            if escrow.state != EscrowState.CREATED:
                raise InvalidEscrowState("escrow is not awaiting approval")

            approved = (
                (caller != escrow.depositor or escrow.depositor_approved)
                and (caller != escrow.beneficiary or escrow.beneficiary_approved)
            )
            if approved:
                return []

            if caller == escrow.depositor:
                escrow.depositor_approved = True
            if caller == escrow.beneficiary:
                escrow.beneficiary_approved = True
            pending = [(ESCROW_APPROVED, {'escrowId': escrow_id, 'party': caller})]
            if escrow.depositor_approved and escrow.beneficiary_approved:
                escrow.state = EscrowState.ACTIVE
                pending.append((ESCROW_ACTIVATED, {'escrowId': escrow_id}))
                logger.info("Escrow %s activated", escrow_id)
            escrow.save(update_fields=['depositor_approved', 'beneficiary_approved', 'state'])
            return self._commit(state, escrow_id, pending)

    def release(self, sender, escrow_id):
        """Pay the held amount to the beneficiary. Depositor or arbiter only."""
        with self._call(guarded=True) as state:
            escrow = self._require(escrow_id, for_update=True)
            caller = normalize_address(sender)
            if caller not in (escrow.depositor, self.arbiter):
                raise UnauthorizedCaller("only the depositor can release")
            if escrow.state != EscrowState.ACTIVE:
                raise InvalidEscrowState("escrow is not active")

            self._pay_out(state, escrow, escrow.beneficiary, EscrowState.RELEASED)
            logger.info("Escrow %s released to %s", escrow_id, escrow.beneficiary)
            return self._commit(state, escrow_id, [
                (ESCROW_RELEASED, {
                    'escrowId': escrow_id,
                    'beneficiary': escrow.beneficiary,
                    'amount': escrow.amount,
                }),
            ])

    def refund(self, sender, escrow_id):
        """Return the held amount to the depositor. Depositor or arbiter only."""
        with self._call(guarded=True) as state:
            escrow = self._require(escrow_id, for_update=True)
            caller = normalize_address(sender)
            if caller not in (escrow.depositor, self.arbiter):
                raise UnauthorizedCaller("only the depositor or arbiter can refund")
            if escrow.state not in (EscrowState.CREATED, EscrowState.ACTIVE):
                raise InvalidEscrowState("escrow cannot be refunded")

            self._pay_out(state, escrow, escrow.depositor, EscrowState.REFUNDED)
            logger.info("Escrow %s refunded to %s", escrow_id, escrow.depositor)
            return self._commit(state, escrow_id, [
                (ESCROW_REFUNDED, {
                    'escrowId': escrow_id,
                    'depositor': escrow.depositor,
                    'amount': escrow.amount,
                }),
            ])

    def cancel_escrow(self, sender, escrow_id):
        """Depositor backs out before activation; funds go back to the depositor."""
        with self._call(guarded=True) as state:
            escrow = self._require(escrow_id, for_update=True)
            if normalize_address(sender) != escrow.depositor:
                raise UnauthorizedCaller("only the depositor can cancel")
            if escrow.state != EscrowState.CREATED:
                raise InvalidEscrowState("escrow is already active")

            self._pay_out(state, escrow, escrow.depositor, EscrowState.CANCELLED)
            logger.info("Escrow %s cancelled", escrow_id)
            return self._commit(state, escrow_id, [
                (ESCROW_CANCELLED, {'escrowId': escrow_id, 'depositor': escrow.depositor}),
            ])

    # -- internals -----------------------------------------------------------

    def _state(self):
        return LedgerState.objects.filter(address=self.address).first() or LedgerState(address=self.address)

    @contextmanager
    def _call(self, guarded=False):
        """One contract transaction: the state row is locked until it commits or reverts."""
        with transaction.atomic(), self._non_reentrant(guarded):
            LedgerState.objects.get_or_create(address=self.address)
            yield LedgerState.objects.select_for_update().get(address=self.address)

    def _require(self, escrow_id, for_update=False):
        escrows = LedgerEscrow.objects.filter(contract_address=self.address, escrow_id=escrow_id)
        if for_update:
            escrows = escrows.select_for_update()
        escrow = escrows.first()
        if escrow is None:
            raise EscrowNotFound("escrow does not exist")
        return escrow

    @staticmethod
    def _require_address(address, reason):
        normalized = normalize_address(address)
        if normalized is None or normalized == ZERO_ADDRESS:
            raise EscrowRevert(reason)
        return normalized

    def _pay_out(self, state, escrow, recipient, final_state):
        state.held = checked_sub(state.held, escrow.amount)
        credit, _ = LedgerCredit.objects.get_or_create(contract_address=self.address, account=recipient)
        credit.amount = checked_add(credit.amount, escrow.amount)
        credit.save(update_fields=['amount'])
        escrow.state = final_state
        escrow.save(update_fields=['state'])

    @contextmanager
    def _non_reentrant(self, guarded):
        if not guarded:
            yield
            return
        if self._entered:
            raise EscrowRevert("reentrant call")
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    def _commit(self, state, escrow_id, pending):
        state.block_number += 1
        state.save(update_fields=['held', 'next_escrow_id', 'block_number'])
        tx_hash = '0x' + hashlib.sha256(
            f"{self.address}:{state.block_number}:{escrow_id}:{pending[0][0]}".encode()
        ).hexdigest()

        logs = LedgerLog.objects.bulk_create([
            LedgerLog(
                contract_address=self.address,
                escrow_id=escrow_id,
                name=name,
                args=dict(args),
                block_number=state.block_number,
                tx_hash=tx_hash,
                log_index=log_index,
            )
            for log_index, (name, args) in enumerate(pending)
        ])
        return [_event(log) for log in logs]
