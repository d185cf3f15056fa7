import asyncio
import time
import pytest
import requests
from web3.exceptions import Web3RPCError
from bmail_core.content import InMemoryContentStore
from bmail_core.crypto import encrypt_payload
from bmail_core.errors import LedgerUnavailable, StorageUnavailable
from bmail_core.ledger import InMemoryLedger, Web3Ledger
from bmail_core.utils import RetryPolicy
from bmail_core.pipeline import MailPipeline
from tests.conftest import ALICE, BOB, MALLORY
from tests.fakes import FakeContract, FakeWeb3


class CountingContentStore(InMemoryContentStore):
    def __init__(self, fail_upload=False):
        super().__init__()
        self.fail_upload = fail_upload
        self.uploads = 0

    def upload(self, data):
        self.uploads += 1
        if self.fail_upload:
            raise StorageUnavailable("Pinata API error 503: unavailable")
        return super().upload(data)


class CountingLedger(InMemoryLedger):
    def __init__(self, *args, fail_append=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_append = fail_append
        self.writes = 0

    def append(self, sender, recipient, content_id):
        self.writes += 1
        if self.fail_append:
            raise LedgerUnavailable("No receipt within 120s")
        return super().append(sender, recipient, content_id)

    def save_draft(self, sender, recipient, content_id):
        self.writes += 1
        return super().save_draft(sender, recipient, content_id)


def _sessions(network, alice_keys, bob_keys):
    alice = MailPipeline(network.context("alice@x", ALICE, alice_keys.private_key))
    bob = MailPipeline(network.context("bob@x", BOB, bob_keys.private_key))
    return alice, bob


def test_send_and_read(network, alice_keys, bob_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)

    sent = asyncio.run(alice.send("bob@x", "Hi", "Test message"))
    assert sent["success"], sent
    assert sent["content_id"].startswith("bafk")

    inbox = asyncio.run(bob.list_inbox(BOB))
    assert inbox["success"]
    [item] = inbox["messages"]
    assert item.id == sent["id"]
    assert item.payload["subject"] == "Hi"
    assert item.body == "Test message"
    assert item.payload["sender"] == "alice@x"
    assert item.decryption_error is None
    assert item.to_dict()["decryptionError"] is None

    outbox = asyncio.run(alice.list_sent(ALICE))
    assert [m.id for m in outbox["messages"]] == [sent["id"]]
    assert asyncio.run(alice.list_inbox(ALICE))["messages"] == []


def test_unknown_recipient_touches_nothing(network, alice_keys):
    content = CountingContentStore()
    ledger = CountingLedger(ALICE, network.book)
    ctx = network.context("alice@x", ALICE, alice_keys.private_key, content=content, ledger=ledger)
    del network.directory.public_keys["bob@x"]

    result = asyncio.run(MailPipeline(ctx).send("bob@x", "Hello", "World"))

    assert result["success"] is False
    assert result["error"] == "Recipient bob@x not found"
    assert content.uploads == 0
    assert ledger.writes == 0


def test_missing_recipient_address(network, alice_keys):
    del network.directory.addresses["bob@x"]
    alice = MailPipeline(network.context("alice@x", ALICE, alice_keys.private_key))
    result = asyncio.run(alice.send("bob@x", "Hello", "World"))
    assert result == {
        "success": False,
        "error": "Recipient bob@x address not found",
        "code": "RecipientUnknown",
    }


def test_upload_failure_never_reaches_ledger(network, alice_keys):
    content = CountingContentStore(fail_upload=True)
    ledger = CountingLedger(ALICE, network.book)
    ctx = network.context("alice@x", ALICE, alice_keys.private_key, content=content, ledger=ledger)

    for op in (MailPipeline(ctx).send, MailPipeline(ctx).save_draft):
        result = asyncio.run(op("bob@x", "Hello", "World"))
        assert result["success"] is False
        assert result["code"] == "StorageUnavailable"

    assert content.uploads == 2
    assert ledger.writes == 0
    assert network.book.records == {}


def test_ledger_failure_after_upload_is_reported_as_undelivered(network, alice_keys):
    content = CountingContentStore()
    ledger = CountingLedger(ALICE, network.book, fail_append=True)
    ctx = network.context("alice@x", ALICE, alice_keys.private_key, content=content, ledger=ledger)

    result = asyncio.run(MailPipeline(ctx).send("bob@x", "Hello", "World"))

    assert result["success"] is False
    assert result["delivered"] is False
    assert result["code"] == "LedgerUnavailable"
    assert result["content_id"] in content.blobs
    assert "not delivered" in result["error"]


def test_partial_failure_listing(network, alice_keys, bob_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)
    ids = [asyncio.run(alice.send("bob@x", f"subject {i}", f"body {i}"))["id"] for i in range(3)]

    lost = network.book.records[ids[1]].content_id
    del network.content.blobs[lost]

    inbox = asyncio.run(bob.list_inbox(BOB))
    assert inbox["success"]
    items = {m.id: m for m in inbox["messages"]}
    assert len(items) == 3
    assert items[ids[0]].body == "body 0"
    assert items[ids[2]].body == "body 2"
    assert items[ids[1]].body is None
    assert items[ids[1]].payload is None
    assert "not found" in items[ids[1]].decryption_error


@pytest.mark.parametrize("blob", [
    {"version": 2, "wrappedKey": 1, "iv": 2, "authTag": 3, "ciphertext": 4},
    {"ciphertext": 5},
    b"\xff\xfe not utf-8",
    b"[1, 2, 3]",
])
def test_hostile_blob_does_not_break_listing(network, alice_keys, bob_keys, blob):
    alice, bob = _sessions(network, alice_keys, bob_keys)
    good = asyncio.run(alice.send("bob@x", "ok", "readable"))["id"]
    bad = InMemoryLedger(ALICE, network.book).append(ALICE, BOB, network.content.upload(blob))

    inbox = asyncio.run(bob.list_inbox(BOB))
    assert inbox["success"]
    items = {m.id: m for m in inbox["messages"]}
    assert items[good].body == "readable"
    assert items[bad].payload is None
    assert items[bad].decryption_error


def test_message_for_another_key_is_reported_per_item(network, alice_keys, bob_keys, mallory_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)
    good = asyncio.run(alice.send("bob@x", "ok", "readable"))["id"]

    # record addressed to bob whose content was sealed for mallory
    cid = network.content.upload(encrypt_payload({"body": "secret"}, mallory_keys.public_key))
    bad = InMemoryLedger(ALICE, network.book).append(ALICE, BOB, cid)

    items = {m.id: m for m in asyncio.run(bob.list_inbox(BOB))["messages"]}
    assert items[good].body == "readable"
    assert items[bad].body is None
    assert "could not be unwrapped" in items[bad].decryption_error


def test_listing_is_sorted_newest_first_regardless_of_fetch_order(network, alice_keys, bob_keys):
    class SlowFirst(InMemoryContentStore):
        def __init__(self, shared):
            super().__init__()
            self.blobs = shared.blobs
            self.first = None

        def fetch(self, content_id):
            if content_id == self.first:
                time.sleep(0.05)
            return super().fetch(content_id)

    alice, _ = _sessions(network, alice_keys, bob_keys)
    ids = [asyncio.run(alice.send("bob@x", str(i), str(i)))["id"] for i in range(4)]

    slow = SlowFirst(network.content)
    slow.first = network.book.records[ids[0]].content_id
    bob = MailPipeline(network.context("bob@x", BOB, bob_keys.private_key, content=slow))

    listed = asyncio.run(bob.list_inbox(BOB))["messages"]
    assert [m.id for m in listed] == list(reversed(ids))
    assert [m.body for m in listed] == ["3", "2", "1", "0"]


def test_listing_without_private_key_fails(network, alice_keys, bob_keys):
    alice, _ = _sessions(network, alice_keys, bob_keys)
    asyncio.run(alice.send("bob@x", "Hi", "there"))

    bob_elsewhere = MailPipeline(network.context("bob@x", BOB))
    result = asyncio.run(bob_elsewhere.list_inbox(BOB))
    assert result["success"] is False
    assert result["code"] == "KeyNotFound"


def test_draft_lifecycle(network, alice_keys, bob_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)

    draft = asyncio.run(alice.save_draft("bob@x", "Draft", "v1"))
    assert draft["success"]
    assert [m.id for m in asyncio.run(alice.list_drafts(ALICE))["messages"]] == [draft["id"]]
    assert asyncio.run(alice.list_sent(ALICE))["messages"] == []
    assert asyncio.run(bob.list_inbox(BOB))["messages"] == []

    updated = asyncio.run(alice.update_draft(draft["id"], "bob@x", "Draft", "v2"))
    assert updated["success"]
    assert updated["content_id"] != draft["content_id"]

    assert asyncio.run(alice.send_draft(draft["id"]))["success"]
    [item] = asyncio.run(bob.list_inbox(BOB))["messages"]
    assert item.body == "v2"
    assert asyncio.run(alice.list_drafts(ALICE))["messages"] == []

    again = asyncio.run(alice.send_draft(draft["id"]))
    assert again["success"] is False
    assert again["code"] == "InvalidTransition"
    assert asyncio.run(alice.update_draft(draft["id"], "bob@x", "Draft", "v3"))["code"] == "InvalidTransition"


def test_update_draft_for_other_recipient(network, alice_keys, bob_keys):
    alice, _ = _sessions(network, alice_keys, bob_keys)
    draft = asyncio.run(alice.save_draft("bob@x", "Draft", "v1"))
    result = asyncio.run(alice.update_draft(draft["id"], "mallory@x", "Draft", "v2"))
    assert result["success"] is False
    assert result["code"] == "RecipientUnknown"


def test_status_flags(network, alice_keys, bob_keys, mallory_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)
    mid = asyncio.run(alice.send("bob@x", "Hi", "there"))["id"]

    assert asyncio.run(bob.mark_read(mid)) == {"success": True}
    assert asyncio.run(bob.toggle_star(mid)) == {"success": True}
    rec = network.book.records[mid]
    assert rec.is_read and rec.is_starred

    asyncio.run(alice.toggle_star(mid))
    assert not network.book.records[mid].is_starred

    mallory = MailPipeline(network.context("mallory@x", MALLORY, mallory_keys.private_key))
    denied = asyncio.run(mallory.update_status(mid, False, False, False))
    assert denied["success"] is False
    assert denied["code"] == "NotAuthorized"
    assert network.book.records[mid].is_read


def test_get_message(network, alice_keys, bob_keys):
    alice, bob = _sessions(network, alice_keys, bob_keys)
    mid = asyncio.run(alice.send("bob@x", "Hi", "single"))["id"]

    found = asyncio.run(bob.get_message(mid))
    assert found["success"] and found["message"].body == "single"

    missing = asyncio.run(bob.get_message(999))
    assert missing["success"] is False
    assert missing["code"] == "NotFound"


def _web3_session(network, private_key, contract):
    ledger = Web3Ledger(FakeWeb3(), contract, ALICE, retry=RetryPolicy(attempts=2, delay=0), receipt_timeout=5)
    return MailPipeline(network.context("alice@x", ALICE, private_key, ledger=ledger))


def test_node_refusal_on_send_is_a_result(network, alice_keys):
    contract = FakeContract()
    contract.revert = Web3RPCError("insufficient funds for gas * price + value")
    result = asyncio.run(_web3_session(network, alice_keys.private_key, contract).send("bob@x", "Hi", "x"))
    assert result["success"] is False
    assert result["delivered"] is False
    assert result["code"] == "LedgerRejected"
    assert "insufficient funds" in result["error"]


def test_listing_invalid_address_is_a_result(network, alice_keys):
    alice = _web3_session(network, alice_keys.private_key, FakeContract())
    for listing in (alice.list_inbox, alice.list_sent, alice.list_drafts):
        result = asyncio.run(listing("bob@x"))
        assert result["success"] is False
        assert result["code"] == "LedgerRejected"


def test_recorded_send_with_unknown_id_is_delivered(network, alice_keys):
    contract = FakeContract()

    def down(addr):
        raise requests.ConnectionError("node down")

    contract.reads["getUserEmails"] = down
    result = asyncio.run(_web3_session(network, alice_keys.private_key, contract).send("bob@x", "Hi", "x"))
    assert result["success"] is True
    assert result["id"] is None
    assert result["content_id"] in network.content.blobs
    assert "id could not be determined" in result["warning"]
    assert len(contract.transactions) == 1


def test_directory_outage_is_not_reported_as_unknown_recipient(network, alice_keys):
    def down(identity):
        raise StorageUnavailable("directory returned 503")

    network.directory.lookup_public_key = down
    alice = MailPipeline(network.context("alice@x", ALICE, alice_keys.private_key))
    result = asyncio.run(alice.send("bob@x", "Hi", "x"))
    assert result["success"] is False
    assert result["code"] == "StorageUnavailable"
    assert network.book.records == {}
