# bmail_core/ledger/abi.py
# ABI of the EmailStorage contract (the subset this client calls).

def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
    }


def _event(name, inputs):
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": n, "type": t, "indexed": idx} for n, t, idx in inputs],
    }


_EMAIL_EVENT_FIELDS = [
    ("emailId", "uint256", True),
    ("sender", "address", True),
    ("recipient", "address", True),
    ("ipfsHash", "string", False),
    ("timestamp", "uint256", False),
]

EMAIL_STORAGE_ABI = [
    _fn("sendEmail", [("recipient", "address"), ("ipfsHash", "string")], [("", "uint256")]),
    _fn("saveDraft", [("recipient", "address"), ("ipfsHash", "string")], [("", "uint256")]),
    _fn("updateDraft", [("emailId", "uint256"), ("ipfsHash", "string")]),
    _fn("updateEmailStatus", [
        ("emailId", "uint256"), ("isRead", "bool"), ("isStarred", "bool"), ("isDraft", "bool"),
    ]),
    _fn("getEmail", [("emailId", "uint256")], [
        ("sender", "address"),
        ("recipient", "address"),
        ("ipfsHash", "string"),
        ("timestamp", "uint256"),
        ("isRead", "bool"),
        ("isStarred", "bool"),
        ("isDraft", "bool"),
    ], mutability="view"),
    _fn("getUserEmails", [("user", "address")], [("", "uint256[]")], mutability="view"),
    _event("EmailSent", _EMAIL_EVENT_FIELDS),
    _event("DraftSaved", _EMAIL_EVENT_FIELDS),
    _event("DraftUpdated", [("emailId", "uint256", True), ("ipfsHash", "string", False)]),
]

SEND_EVENTS = ("EmailSent",)
# some deployments emit EmailSent for drafts as well
DRAFT_EVENTS = ("DraftSaved", "EmailSent")
