import pytest

from escrow.contract import (
    UINT256_MAX,
    ZERO_ADDRESS,
    ESCROW_ACTIVATED,
    ESCROW_APPROVED,
    ESCROW_CREATED,
    ESCROW_RELEASED,
    ChainEvent,
    EscrowLedger,
    EscrowNotFound,
    EscrowRevert,
    EscrowState,
    InvalidEscrowState,
    UnauthorizedCaller,
)

pytestmark = pytest.mark.django_db

CONTRACT = '0x5fbdb2315678afecb367f032d93f642f64180aa3'
ARBITER = '0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266'
DEPOSITOR = '0x' + '1' * 40
BENEFICIARY = '0x' + '2' * 40
STRANGER = '0x' + '3' * 40


@pytest.fixture
def contract():
    return EscrowLedger(address=CONTRACT, arbiter=ARBITER)


def open_escrow(contract, value=50000, activate=True):
    escrow_id, _ = contract.create_escrow(DEPOSITOR, BENEFICIARY, 'milestone', value=value)
    if activate:
        contract.activate_escrow(DEPOSITOR, escrow_id)
        contract.activate_escrow(BENEFICIARY, escrow_id)
    return escrow_id


def test_create_holds_funds_and_emits_event(contract):
    escrow_id, events = contract.create_escrow(DEPOSITOR, BENEFICIARY, 'milestone', value=50000)

    view = contract.get_escrow(escrow_id)
    assert view.state == EscrowState.CREATED
    assert view.amount == 50000
    assert contract.held_balance == 50000
    assert [event.name for event in events] == [ESCROW_CREATED]
    assert events[0].args == {
        'escrowId': escrow_id,
        'depositor': DEPOSITOR,
        'beneficiary': BENEFICIARY,
        'amount': 50000,
    }


@pytest.mark.parametrize('value', [0, -5, 1.5, True])
def test_create_rejects_non_positive_or_non_integer_value(contract, value):
    with pytest.raises(EscrowRevert):
        contract.create_escrow(DEPOSITOR, BENEFICIARY, value=value)
    assert contract.escrow_count() == 0


@pytest.mark.parametrize('beneficiary', [ZERO_ADDRESS, '0x123', '', None])
def test_create_rejects_invalid_beneficiary(contract, beneficiary):
    with pytest.raises(EscrowRevert, match='invalid beneficiary'):
        contract.create_escrow(DEPOSITOR, beneficiary, value=100)


def test_held_balance_overflow_reverts(contract):
    contract.create_escrow(DEPOSITOR, BENEFICIARY, value=UINT256_MAX)
    with pytest.raises(EscrowRevert, match='overflow'):
        contract.create_escrow(DEPOSITOR, BENEFICIARY, value=1)
    assert contract.escrow_count() == 1


def test_activation_needs_both_parties(contract):
    escrow_id = open_escrow(contract, activate=False)

    events = contract.activate_escrow(DEPOSITOR, escrow_id)
    assert [event.name for event in events] == [ESCROW_APPROVED]
    assert contract.get_escrow(escrow_id).state == EscrowState.CREATED

    events = contract.activate_escrow(BENEFICIARY, escrow_id)
    assert [event.name for event in events] == [ESCROW_APPROVED, ESCROW_ACTIVATED]
    assert contract.get_escrow(escrow_id).state == EscrowState.ACTIVE


def test_repeated_approval_does_not_double_count(contract):
    escrow_id = open_escrow(contract, activate=False)

    contract.activate_escrow(DEPOSITOR, escrow_id)
    assert contract.activate_escrow(DEPOSITOR, escrow_id) == []

    view = contract.get_escrow(escrow_id)
    assert view.state == EscrowState.CREATED
    assert view.depositor_approved and not view.beneficiary_approved


def test_stranger_cannot_activate(contract):
    escrow_id = open_escrow(contract, activate=False)
    with pytest.raises(UnauthorizedCaller):
        contract.activate_escrow(STRANGER, escrow_id)


def test_release_pays_beneficiary(contract):
    escrow_id = open_escrow(contract)

    events = contract.release(DEPOSITOR, escrow_id)

    assert [event.name for event in events] == [ESCROW_RELEASED]
    assert contract.get_escrow(escrow_id).state == EscrowState.RELEASED
    assert contract.balance_of(BENEFICIARY) == 50000
    assert contract.held_balance == 0


def test_release_from_created_fails_without_moving_funds(contract):
    escrow_id = open_escrow(contract, activate=False)

    with pytest.raises(InvalidEscrowState):
        contract.release(DEPOSITOR, escrow_id)

    assert contract.held_balance == 50000
    assert contract.balance_of(BENEFICIARY) == 0
    assert contract.get_escrow(escrow_id).state == EscrowState.CREATED


@pytest.mark.parametrize('settle', ['release', 'refund', 'cancel'])
def test_release_after_settlement_fails(contract, settle):
    escrow_id = open_escrow(contract, activate=settle != 'cancel')
    if settle == 'release':
        contract.release(DEPOSITOR, escrow_id)
    elif settle == 'refund':
        contract.refund(DEPOSITOR, escrow_id)
    else:
        contract.cancel_escrow(DEPOSITOR, escrow_id)
    credited = (contract.balance_of(DEPOSITOR), contract.balance_of(BENEFICIARY))

    with pytest.raises(InvalidEscrowState):
        contract.release(DEPOSITOR, escrow_id)

    assert (contract.balance_of(DEPOSITOR), contract.balance_of(BENEFICIARY)) == credited
    assert contract.held_balance == 0


def test_only_depositor_or_arbiter_can_release(contract):
    escrow_id = open_escrow(contract)

    with pytest.raises(UnauthorizedCaller):
        contract.release(BENEFICIARY, escrow_id)

    contract.release(ARBITER, escrow_id)
    assert contract.get_escrow(escrow_id).state == EscrowState.RELEASED


@pytest.mark.parametrize('activate', [False, True])
def test_refund_from_created_or_active(contract, activate):
    escrow_id = open_escrow(contract, activate=activate)

    contract.refund(DEPOSITOR, escrow_id)

    assert contract.get_escrow(escrow_id).state == EscrowState.REFUNDED
    assert contract.balance_of(DEPOSITOR) == 50000


def test_refund_twice_fails(contract):
    escrow_id = open_escrow(contract)
    contract.refund(ARBITER, escrow_id)

    with pytest.raises(InvalidEscrowState):
        contract.refund(ARBITER, escrow_id)
    assert contract.balance_of(DEPOSITOR) == 50000


def test_cancel_only_before_activation(contract):
    active_id = open_escrow(contract)
    with pytest.raises(InvalidEscrowState):
        contract.cancel_escrow(DEPOSITOR, active_id)

    created_id = open_escrow(contract, activate=False)
    with pytest.raises(UnauthorizedCaller):
        contract.cancel_escrow(BENEFICIARY, created_id)
    contract.cancel_escrow(DEPOSITOR, created_id)
    assert contract.get_escrow(created_id).state == EscrowState.CANCELLED


def test_get_missing_escrow_reverts(contract):
    with pytest.raises(EscrowNotFound):
        contract.get_escrow(99)


def test_reentrant_release_is_rejected(contract):
    escrow_id = open_escrow(contract)
    contract._entered = True
    try:
        with pytest.raises(EscrowRevert, match='reentrant'):
            contract.release(DEPOSITOR, escrow_id)
    finally:
        contract._entered = False
    assert contract.get_escrow(escrow_id).state == EscrowState.ACTIVE


def test_verify_event_rejects_forgeries(contract):
    escrow_id = open_escrow(contract)
    event = contract.release(DEPOSITOR, escrow_id)[0]

    assert contract.verify_event(event)
    forged = ChainEvent(
        name=event.name,
        escrow_id=event.escrow_id,
        args={**event.args, 'amount': 1},
        block_number=event.block_number,
        tx_hash=event.tx_hash,
        log_index=event.log_index,
    )
    assert not contract.verify_event(forged)


def test_events_can_be_filtered(contract):
    first = open_escrow(contract)
    open_escrow(contract)

    names = [event.name for event in contract.events(escrow_id=first)]
    assert names == [ESCROW_CREATED, ESCROW_APPROVED, ESCROW_APPROVED, ESCROW_ACTIVATED]
    assert contract.events(since_block=contract.events()[-1].block_number) == []


def test_state_is_shared_between_ledger_handles(contract):
    escrow_id = open_escrow(contract)

    reopened = EscrowLedger(address=CONTRACT, arbiter=ARBITER)
    assert reopened.get_escrow(escrow_id).state == EscrowState.ACTIVE
    assert reopened.held_balance == 50000
    assert reopened.verify_event(contract.events(escrow_id=escrow_id)[-1])

    second_id = open_escrow(reopened)
    assert second_id == escrow_id + 1
    reopened.release(DEPOSITOR, escrow_id)
    assert contract.balance_of(BENEFICIARY) == 50000


def test_contracts_at_different_addresses_are_independent(contract):
    open_escrow(contract)
    other = EscrowLedger(address='0x' + '9' * 40)

    assert other.escrow_count() == 0
    assert other.held_balance == 0
    with pytest.raises(EscrowNotFound):
        other.get_escrow(1)


def test_uint256_amounts_survive_storage(contract):
    escrow_id, _ = contract.create_escrow(DEPOSITOR, BENEFICIARY, value=UINT256_MAX)

    assert contract.get_escrow(escrow_id).amount == UINT256_MAX
    assert contract.held_balance == UINT256_MAX
