import pytest

from accounts import trust_bands


@pytest.mark.parametrize('internal,external', [('A', 'T4'), ('B', 'T3'), ('C', 'T2'), ('D', 'T1')])
def test_internal_and_external_bands_map_both_ways(internal, external):
    assert trust_bands.to_frd_band(internal) == external
    assert trust_bands.to_internal_band(external) == internal


@pytest.mark.parametrize('band', ['A', 'B', 'C', 'D'])
def test_round_trip_returns_internal_band(band):
    assert trust_bands.to_internal_band(trust_bands.to_frd_band(band)) == band


def test_t0_floors_to_d():
    assert trust_bands.to_internal_band('T0') == 'D'


def test_mapping_is_case_insensitive():
    assert trust_bands.to_frd_band('a') == 'T4'
    assert trust_bands.to_internal_band('t3') == 'B'


@pytest.mark.parametrize('value', [None, '', 'Z', 'T9', 42])
def test_unknown_input_falls_back(value):
    assert trust_bands.to_frd_band(value) == 'T0'
    assert trust_bands.to_internal_band(value) == 'D'


@pytest.mark.parametrize('band', ['A', 'b', 'C', 'd', 'T0', 't1', 'T2', 'T3', 't4'])
def test_known_bands_are_valid(band):
    assert trust_bands.is_valid_trust_band(band)


@pytest.mark.parametrize('band', ['e', 'E', 'T5', 'AA', '', None])
def test_unknown_bands_are_invalid(band):
    assert not trust_bands.is_valid_trust_band(band)


def test_descriptions():
    assert trust_bands.get_trust_band_description('a') == 'Preferred - Highest trust level'
    assert trust_bands.get_trust_band_description('T0') == 'Unverified - No trust level'
    assert trust_bands.get_trust_band_description('x') == trust_bands.UNKNOWN_DESCRIPTION


@pytest.mark.parametrize('band', [' a', 'A ', ' t2 '])
def test_surrounding_whitespace_is_not_trimmed(band):
    assert not trust_bands.is_valid_trust_band(band)
    assert trust_bands.to_internal_band(band) == 'D'
