"""
Translation between the two trust-rating vocabularies used on the platform.

Internal bands run A (highest) to D; the external FRD scale runs T4 (highest)
to T0. T0 ("unverified") has no internal counterpart and reverse-maps to D,
so the round trip is lossy only for T0.
"""

INTERNAL_BANDS = ('A', 'B', 'C', 'D')
FRD_BANDS = ('T0', 'T1', 'T2', 'T3', 'T4')

_INTERNAL_TO_FRD = {
    'A': 'T4',
    'B': 'T3',
    'C': 'T2',
    'D': 'T1',
}

_FRD_TO_INTERNAL = {
    'T4': 'A',
    'T3': 'B',
    'T2': 'C',
    'T1': 'D',
    'T0': 'D',  # floor clamp
}

_DESCRIPTIONS = {
    'A': 'Preferred - Highest trust level',
    'B': 'Trusted - High trust level',
    'C': 'Reliable - Medium trust level',
    'D': 'Verified - Basic trust level',
    'T4': 'Preferred - Highest trust level',
    'T3': 'Trusted - High trust level',
    'T2': 'Reliable - Medium trust level',
    'T1': 'Verified - Basic trust level',
    'T0': 'Unverified - No trust level',
}

UNKNOWN_DESCRIPTION = 'Unknown trust level'


def _normalize(band):
    if not band or not isinstance(band, str):
        return ''
    return band.upper()


def to_frd_band(internal):
    """Map an internal band (A-D) to the FRD scale. Unknown or missing input yields T0."""
    return _INTERNAL_TO_FRD.get(_normalize(internal), 'T0')


def to_internal_band(frd):
    """Map an FRD band (T0-T4) to the internal scale. Unknown or missing input yields D."""
    return _FRD_TO_INTERNAL.get(_normalize(frd), 'D')


def get_trust_band_description(band):
    return _DESCRIPTIONS.get(_normalize(band), UNKNOWN_DESCRIPTION)


def is_valid_trust_band(band):
    normalized = _normalize(band)
    return normalized in INTERNAL_BANDS or normalized in FRD_BANDS
