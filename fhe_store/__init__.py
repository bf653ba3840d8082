"""
Encrypted Value Store

Stores integers encrypted under the BFV homomorphic scheme and answers
equality searches without revealing the plaintext of any other record.
"""
__version__ = "1.0.0"
