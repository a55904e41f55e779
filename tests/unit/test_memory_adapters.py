"""
Unit tests for the in-memory ledger and content store.
"""

import asyncio
import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from agritrace.ledger import InMemoryLedger, LedgerRejected, Transactions
from agritrace.storage import ContentNotFound, InMemoryContentStore


def product_json(product_input, product_id="P-1", **overrides) -> str:
    return json.dumps({**product_input, "id": product_id, "status": "PLANTED", **overrides})


class TestInMemoryLedger:
    """Tests for chaincode semantics of the in-memory ledger"""

    @pytest.mark.asyncio
    async def test_create_and_get_product(self, ledger, product_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        product = await ledger.evaluate(Transactions.GET_PRODUCT, "P-1")

        assert product["batchNumber"] == "B1"
        assert product["supplyChainSteps"] == []
        assert "createdAt" in product

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, ledger, product_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        product = await ledger.evaluate(Transactions.GET_PRODUCT, "P-1")
        product["status"] = "SOLD"

        assert (await ledger.evaluate(Transactions.GET_PRODUCT, "P-1"))["status"] == "PLANTED"

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, ledger, product_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        with pytest.raises(LedgerRejected) as exc_info:
            await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        assert exc_info.value.reason == LedgerRejected.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_unknown_product(self, ledger):
        with pytest.raises(LedgerRejected) as exc_info:
            await ledger.evaluate(Transactions.GET_PRODUCT, "nope")

        assert exc_info.value.reason == LedgerRejected.NOT_FOUND
        assert exc_info.value.transaction == Transactions.GET_PRODUCT

    @pytest.mark.asyncio
    async def test_malformed_payload_rejected(self, ledger):
        with pytest.raises(LedgerRejected) as exc_info:
            await ledger.submit(Transactions.CREATE_PRODUCT, "{not json")
        assert exc_info.value.reason == LedgerRejected.INVALID

    @pytest.mark.asyncio
    async def test_status_update_records_step(self, ledger, product_input, depot_location):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        await ledger.submit(
            Transactions.UPDATE_PRODUCT_STATUS, "P-1", "HARVESTED", json.dumps(depot_location), "F1"
        )

        product = await ledger.evaluate(Transactions.GET_PRODUCT, "P-1")
        assert product["status"] == "HARVESTED"
        assert product["currentLocation"] == depot_location
        assert product["currentOwner"] == "F1"

        [event] = product["supplyChainSteps"]
        assert event["id"] == "P-1-0"
        assert event["stepType"] == "HARVESTED"
        assert event["description"] == "Product status updated to HARVESTED"

    @pytest.mark.asyncio
    async def test_status_update_without_location(self, ledger, product_input, farm_location):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        await ledger.submit(Transactions.UPDATE_PRODUCT_STATUS, "P-1", "HARVESTED", "", "F1")

        product = await ledger.evaluate(Transactions.GET_PRODUCT, "P-1")
        assert product["currentLocation"] == farm_location
        assert product["supplyChainSteps"][0]["location"] is None

    @pytest.mark.asyncio
    async def test_stale_transition_is_conflict(self, ledger, product_input):
        """Test compare-and-submit: a non-adjacent transition is rejected"""
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))
        await ledger.submit(Transactions.UPDATE_PRODUCT_STATUS, "P-1", "HARVESTED", "", "F1")

        with pytest.raises(LedgerRejected) as exc_info:
            await ledger.submit(Transactions.UPDATE_PRODUCT_STATUS, "P-1", "HARVESTED", "", "F2")

        assert exc_info.value.reason == LedgerRejected.CONFLICT

    @pytest.mark.asyncio
    async def test_step_ids_in_append_order(self, ledger, product_input, step_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))

        first = await ledger.submit(Transactions.ADD_SUPPLY_CHAIN_STEP, "P-1", json.dumps(step_input))
        second = await ledger.submit(Transactions.ADD_SUPPLY_CHAIN_STEP, "P-1", json.dumps(step_input))

        assert (first["id"], second["id"]) == ("P-1-0", "P-1-1")
        history = await ledger.evaluate(Transactions.GET_PRODUCT_HISTORY, "P-1")
        assert [s["id"] for s in history] == ["P-1-0", "P-1-1"]

    @pytest.mark.asyncio
    async def test_step_on_sold_product_rejected(self, ledger, product_input, step_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input, status="SOLD"))

        with pytest.raises(LedgerRejected) as exc_info:
            await ledger.submit(Transactions.ADD_SUPPLY_CHAIN_STEP, "P-1", json.dumps(step_input))

        assert exc_info.value.reason == LedgerRejected.CONFLICT

    @pytest.mark.asyncio
    async def test_query_by_farmer(self, ledger, product_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input, "P-1"))
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input, "P-2", farmerId="F2"))

        rows = await ledger.evaluate(Transactions.QUERY_PRODUCTS_BY_FARMER, "F1")

        assert [r["id"] for r in rows] == ["P-1"]
        assert await ledger.evaluate(Transactions.QUERY_PRODUCTS_BY_FARMER, "F3") is None

    @pytest.mark.asyncio
    async def test_farmers_and_certificates(self, ledger, farmer_input):
        await ledger.submit(Transactions.CREATE_FARMER, json.dumps({**farmer_input, "id": "F1"}))
        await ledger.submit(Transactions.ADD_CERTIFICATE, json.dumps(
            {"id": "C1", "type": "ORGANIC", "issuer": "NPOP", "subjectFarmerId": "F1"}
        ))

        assert (await ledger.evaluate(Transactions.GET_FARMER, "F1"))["name"] == "Asha Patel"
        assert (await ledger.evaluate(Transactions.GET_CERTIFICATE, "C1"))["issuer"] == "NPOP"

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, ledger):
        with pytest.raises(LedgerRejected):
            await ledger.submit("DeleteProduct", "P-1")

    @pytest.mark.asyncio
    async def test_submissions_logged(self, ledger, product_input):
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))
        assert [tx for tx, _ in ledger.submitted] == [Transactions.CREATE_PRODUCT]


class TestInMemoryContentStore:
    """Tests for the content-addressed in-memory store"""

    @pytest.mark.asyncio
    async def test_put_get(self, content_store):
        content_hash = await content_store.put(b"organic certificate", "cert.pdf")

        assert await content_store.get(content_hash) == b"organic certificate"
        assert len(content_hash) == 64

    @pytest.mark.asyncio
    async def test_missing_content(self, content_store):
        with pytest.raises(ContentNotFound) as exc_info:
            await content_store.get("0" * 64)
        assert exc_info.value.content_hash == "0" * 64

    @pytest.mark.asyncio
    async def test_garbage_collection_keeps_pinned(self, content_store):
        kept = await content_store.put(b"committed", "a")
        dropped = await content_store.put(b"orphaned", "b")
        await content_store.pin(kept)
        await content_store.pin(kept)

        assert content_store.collect_garbage() == 1
        assert content_store.is_pinned(kept)
        assert await content_store.get(kept) == b"committed"
        with pytest.raises(ContentNotFound):
            await content_store.get(dropped)

    @pytest.mark.asyncio
    async def test_pin_missing(self, content_store):
        with pytest.raises(ContentNotFound):
            await content_store.pin("f" * 64)

    @given(st.binary(max_size=2048), st.text(max_size=20), st.text(max_size=20))
    def test_property_same_bytes_same_hash(self, data, first_name, second_name):
        """Property test: putting the same bytes twice yields the same hash"""
        async def put_twice():
            store = InMemoryContentStore()
            return await store.put(data, first_name), await store.put(data, second_name)

        first, second = asyncio.run(put_twice())
        assert first == second

    @given(st.binary(max_size=256), st.binary(max_size=256))
    def test_property_different_bytes_different_hash(self, a, b):
        if a == b:
            return
        assert InMemoryContentStore.hash_bytes(a) != InMemoryContentStore.hash_bytes(b)


class TestLedgerLatency:
    """Tests for simulated latency"""

    @pytest.mark.asyncio
    async def test_latency_applies(self, product_input):
        ledger = InMemoryLedger(latency=0.01)
        await ledger.submit(Transactions.CREATE_PRODUCT, product_json(product_input))
        assert "P-1" in ledger.products
