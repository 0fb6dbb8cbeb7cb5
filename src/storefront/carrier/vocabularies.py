"""Carrier status vocabularies mapped to the internal tracking codes."""

from storefront.carrier.port import TrackingCode

GENERIC = {
    "dispatched": TrackingCode.DISPATCHED,
    "in_transit": TrackingCode.IN_TRANSIT,
    "out_for_delivery": TrackingCode.OUT_FOR_DELIVERY,
    "delivered": TrackingCode.DELIVERED,
    "exception": TrackingCode.EXCEPTION,
    "returned": TrackingCode.RETURNED,
}

CORREIOS = {
    "PO": TrackingCode.DISPATCHED,  # postado
    "DO": TrackingCode.IN_TRANSIT,
    "OEC": TrackingCode.OUT_FOR_DELIVERY,
    "BDE": TrackingCode.DELIVERED,
    "PMT": TrackingCode.EXCEPTION,  # awaiting pickup at agency
    "RO": TrackingCode.RETURNED,
}

FEDEX = {
    "PU": TrackingCode.DISPATCHED,
    "IT": TrackingCode.IN_TRANSIT,
    "OD": TrackingCode.OUT_FOR_DELIVERY,
    "DL": TrackingCode.DELIVERED,
    "DE": TrackingCode.EXCEPTION,
    "HL": TrackingCode.EXCEPTION,  # held at location
}

LOGGI = {
    "created": TrackingCode.DISPATCHED,
    "allocated": TrackingCode.IN_TRANSIT,
    "in_delivery": TrackingCode.OUT_FOR_DELIVERY,
    "delivered": TrackingCode.DELIVERED,
    "failed": TrackingCode.EXCEPTION,
}

VOCABULARIES = {
    "correios": CORREIOS,
    "fedex": FEDEX,
    "loggi": LOGGI,
}


def vocabulary_for(carrier_code: str) -> dict[str, TrackingCode]:
    return VOCABULARIES.get(carrier_code.lower(), GENERIC)
