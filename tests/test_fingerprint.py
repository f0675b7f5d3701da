from __future__ import annotations

import hashlib

from circolari_monitor.fingerprint import DIGEST_SIZE, ContentFingerprinter

from conftest import FakeFetcher


def test_digest_is_sha1_of_concatenated_payload_digests(sleeps) -> None:
    fetcher = FakeFetcher({"a": b"first", "b": b"second"})
    fp = ContentFingerprinter(fetcher, delay_seconds=3, sleep=sleeps)

    digest = fp.fingerprint(["a", "b"])

    expected = hashlib.sha1(
        hashlib.sha1(b"first").digest() + hashlib.sha1(b"second").digest()
    ).digest()
    assert digest == expected
    assert len(digest) == DIGEST_SIZE == 20
    assert fetcher.calls == ["a", "b"]
    assert sleeps.calls == [3, 3]


def test_identical_bytes_give_identical_digest() -> None:
    fp = ContentFingerprinter(FakeFetcher({"a": b"x" * 1000}))
    assert fp.fingerprint(["a"]) == fp.fingerprint(["a"])


def test_single_changed_byte_changes_digest() -> None:
    before = ContentFingerprinter(FakeFetcher({"a": b"abcdef"})).fingerprint(["a"])
    after = ContentFingerprinter(FakeFetcher({"a": b"abcdeF"})).fingerprint(["a"])
    assert before != after


def test_payload_order_matters() -> None:
    fetcher = FakeFetcher({"a": b"1", "b": b"2"})
    fp = ContentFingerprinter(fetcher)
    assert fp.fingerprint(["a", "b"]) != fp.fingerprint(["b", "a"])


def test_second_payload_failure_fails_whole_bundle(sleeps) -> None:
    fetcher = FakeFetcher({"a": b"ok", "b": ConnectionError("reset")})
    fp = ContentFingerprinter(fetcher, delay_seconds=3, sleep=sleeps)

    assert fp.fingerprint(["a", "b", "c"]) is None
    # stops at the first failure
    assert fetcher.calls == ["a", "b"]
    assert sleeps.calls == [3, 3]


def test_no_payloads_is_deterministic() -> None:
    fp = ContentFingerprinter(FakeFetcher())
    assert fp.fingerprint([]) == hashlib.sha1(b"").digest()


def test_zero_delay_never_sleeps(sleeps) -> None:
    fp = ContentFingerprinter(FakeFetcher({"a": b"1"}), delay_seconds=0, sleep=sleeps)
    fp.fingerprint(["a"])
    assert sleeps.calls == []
