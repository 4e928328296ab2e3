import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from claimflow import SignatureError, constant_time_equals, sign_body, verify_signature

SECRET = "s3cret"
BODY = b'{"automation_id":"a1","claim_id":"c1"}'


class TestSignature(unittest.TestCase):
    def test_valid_signature_passes(self):
        self.assertTrue(verify_signature(SECRET, BODY, sign_body(SECRET, BODY)))

    def test_prefixed_signature_passes(self):
        self.assertTrue(verify_signature(SECRET, BODY, "sha256=" + sign_body(SECRET, BODY)))

    def test_wrong_secret_fails(self):
        self.assertFalse(verify_signature("other", BODY, sign_body(SECRET, BODY)))

    def test_body_mutation_fails(self):
        signature = sign_body(SECRET, BODY)
        for idx in range(len(BODY)):
            mutated = bytearray(BODY)
            mutated[idx] ^= 0x01
            self.assertFalse(verify_signature(SECRET, bytes(mutated), signature))

    def test_signature_mutation_fails(self):
        signature = sign_body(SECRET, BODY)
        for idx in range(len(signature)):
            replacement = "0" if signature[idx] != "0" else "1"
            mutated = signature[:idx] + replacement + signature[idx + 1 :]
            self.assertFalse(verify_signature(SECRET, BODY, mutated))

    def test_missing_signature_raises(self):
        with self.assertRaises(SignatureError):
            verify_signature(SECRET, BODY, None)
        with self.assertRaises(SignatureError):
            verify_signature(SECRET, BODY, "")

    def test_malformed_signature_raises(self):
        with self.assertRaises(SignatureError):
            verify_signature(SECRET, BODY, "abc")
        with self.assertRaises(SignatureError):
            verify_signature(SECRET, BODY, sign_body(SECRET, BODY).upper())

    def test_constant_time_equals(self):
        self.assertTrue(constant_time_equals(b"abc", b"abc"))
        self.assertFalse(constant_time_equals(b"abc", b"abd"))
        self.assertFalse(constant_time_equals(b"abc", b"abcd"))
        self.assertTrue(constant_time_equals(b"", b""))


if __name__ == "__main__":
    unittest.main()
