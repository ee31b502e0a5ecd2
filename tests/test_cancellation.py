import threading

import pytest

from local_llm_lib.llm_core import CancellationToken, GenerationCancelledError


def test_first_reason_wins() -> None:
    token = CancellationToken()
    assert not token.is_cancelled
    assert token.reason is None

    token.cancel("tool-call-detected")
    token.cancel("stream-closed")

    assert token.is_cancelled
    assert token.reason == "tool-call-detected"


def test_raise_if_cancelled_carries_reason() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()

    token.cancel("stream-closed")
    with pytest.raises(GenerationCancelledError) as exc_info:
        token.raise_if_cancelled()

    assert exc_info.value.reason == "stream-closed"


def test_cancel_from_many_threads_records_one_reason() -> None:
    token = CancellationToken()
    threads = [threading.Thread(target=token.cancel, args=(f"reason-{i}",)) for i in range(8)]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert token.is_cancelled
    assert token.reason in {f"reason-{i}" for i in range(8)}
