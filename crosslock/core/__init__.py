"""
CrossLock core primitives: timelocks, hashing, auction pricing, Merkle
partial fills, the settlement data model and the journal encodings.
"""
