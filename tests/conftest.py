import itertools
import pytest
from bmail_core.content import InMemoryContentStore
from bmail_core.context import MailContext
from bmail_core.crypto import generate_key_pair
from bmail_core.directory import StaticDirectory
from bmail_core.keystore import KeyStore
from bmail_core.ledger import InMemoryLedger, LedgerBook
from bmail_core.storage import InMemoryKeyStorage

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
MALLORY = "0x" + "e7" * 20


# RSA-2048 generation is slow; share pairs across the whole run
@pytest.fixture(scope="session")
def alice_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def bob_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def mallory_keys():
    return generate_key_pair()


class Network:
    """Directory, content store and ledger shared by several user sessions."""

    def __init__(self):
        self.directory = StaticDirectory()
        self.content = InMemoryContentStore()
        self.book = LedgerBook()
        ticks = itertools.count(1_700_000_000)
        self.clock = lambda: next(ticks)

    def context(self, identity, address, private_key=None, content=None, ledger=None):
        keystore = KeyStore(InMemoryKeyStorage(), InMemoryKeyStorage(), directory=self.directory)
        if private_key:
            keystore.primary.put_private_key(identity, private_key)
        return MailContext(
            identity=identity,
            address=address,
            keystore=keystore,
            directory=self.directory,
            content=content or self.content,
            ledger=ledger or InMemoryLedger(address, self.book, clock=self.clock),
        )


@pytest.fixture
def network(alice_keys, bob_keys, mallory_keys):
    net = Network()
    net.directory.register("alice@x", alice_keys.public_key, ALICE)
    net.directory.register("bob@x", bob_keys.public_key, BOB)
    net.directory.register("mallory@x", mallory_keys.public_key, MALLORY)
    return net
