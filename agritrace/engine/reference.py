"""
Traceability reference derivation (the payload behind a product's QR code).
"""

from agritrace.core.models import Product, TraceabilityReference

HISTORY_PATH = "/api/v1/products/{product_id}/history"


def history_url(base_url: str, product_id: str) -> str:
    return base_url.rstrip("/") + HISTORY_PATH.format(product_id=product_id)


def derive_traceability_reference(product: Product, base_url: str) -> TraceabilityReference:
    """
    Build the lookup reference for ``product``.

    Pure: the same product and base address always yield the same reference.
    """
    return TraceabilityReference(
        product_id=product.id,
        batch_number=product.batch_number,
        farmer_id=product.farmer_id,
        name=product.name,
        history_url=history_url(base_url, product.id),
    )


def encode_reference(reference: TraceabilityReference) -> str:
    """Canonical string to place in a QR code."""
    return reference.to_qr_payload()
