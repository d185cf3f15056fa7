"""
Bmail Core Package
==================
Client-side core of the Bmail decentralized webmail system.

Provides:
- RSA key pair generation and layered local key storage
- Hybrid RSA-OAEP + AES-256-GCM message envelopes
- Content-addressed (IPFS) storage of encrypted bodies
- EmailStorage ledger client (web3) and an in-memory ledger
- MailPipeline: send / draft / list / read orchestration
"""
