"""End-to-end tests for AptosClient against a mocked transport."""

import hashlib
import threading
from unittest.mock import MagicMock

import pytest

from aptos_ledger_mcp.client import AptosClient, SignState, SignTransactionSession
from aptos_ledger_mcp.errors import (
    DeviceBusyError,
    DeviceError,
    EncodingError,
    ProtocolError,
    TransportError,
)
from aptos_ledger_mcp.protocol.commands import Instruction
from aptos_ledger_mcp.protocol.framing import CLA, P2_LAST, P2_MORE
from aptos_ledger_mcp.protocol.path import encode_path, parse_path

OK = b"\x90\x00"
PATH = "m/44'/637'/0'/0'/0'"


def _transport(*responses):
    transport = MagicMock()
    transport.send.side_effect = list(responses)
    return transport


def _sent(transport):
    """(cla, ins, p1, p2, data) for every frame sent."""
    return [c.args[:5] for c in transport.send.call_args_list]


def test_get_version():
    transport = _transport(b"\x01\x02\x03" + OK)
    version = AptosClient(transport).get_version()

    assert version.version == "1.2.3"
    assert _sent(transport) == [(CLA, Instruction.GET_VERSION, 0x00, P2_LAST, b"")]


def test_get_version_device_error():
    transport = _transport(b"\x6E\x00")
    with pytest.raises(DeviceError) as exc_info:
        AptosClient(transport).get_version()
    assert exc_info.value.status == 0x6E00


def test_get_address():
    key = bytes(range(32))
    chain = bytes(range(200, 232))
    body = bytes([33, 0x20]) + key + bytes([32]) + chain
    transport = _transport(body + OK)

    data = AptosClient(transport).get_address(PATH)

    assert data.public_key == key
    assert len(data.public_key) == 32
    assert data.chain_code == chain
    assert data.address == hashlib.sha3_256(key + b"\x00").digest()
    assert data.address_hex == "0x" + hashlib.sha3_256(key + b"\x00").hexdigest()
    assert _sent(transport) == [
        (CLA, Instruction.GET_PUBLIC_KEY, 0x00, P2_LAST, encode_path(parse_path(PATH)))
    ]


def test_get_address_display_sets_confirm_flag():
    body = bytes([33, 0x20]) + b"\x01" * 32 + b"\x00"
    transport = _transport(body + OK)
    AptosClient(transport).get_address(parse_path(PATH), display=True)
    assert _sent(transport)[0][2] == 0x01


def test_get_address_truncated_response():
    transport = _transport(bytes([33, 0x20]) + b"\x01" * 10 + OK)
    with pytest.raises(ProtocolError):
        AptosClient(transport).get_address(PATH)


def test_sign_transaction_frames():
    """600 bytes of transaction: one path frame plus three chunks."""
    signature = bytes(range(64))
    transport = _transport(OK, OK, OK, bytes([64]) + signature + OK)
    tx = bytes(i % 256 for i in range(600))

    result = AptosClient(transport).sign_transaction(PATH, tx)

    assert result.signature == signature
    sent = _sent(transport)
    assert len(sent) == 4
    assert sent[0] == (CLA, Instruction.SIGN_TX, 0x00, P2_MORE, encode_path(parse_path(PATH)))
    assert [(s[2], s[3]) for s in sent[1:]] == [(1, P2_MORE), (2, P2_MORE), (3, P2_LAST)]
    assert b"".join(s[4] for s in sent[1:]) == tx


def test_sign_transaction_intermediate_bodies_are_ignored():
    """Only the final response is parsed for the signature."""
    transport = _transport(b"\xFF" + OK, b"\xFF\xFF" + OK, bytes([2, 0xAB, 0xCD]) + OK)
    result = AptosClient(transport).sign_transaction(PATH, b"\x00" * 300)
    assert result.signature == b"\xAB\xCD"


def test_sign_transaction_small_tx_single_chunk():
    transport = _transport(OK, bytes([1, 0x99]) + OK)
    AptosClient(transport).sign_transaction(PATH, b"\x01\x02")
    sent = _sent(transport)
    assert len(sent) == 2
    assert sent[1][2:] == (1, P2_LAST, b"\x01\x02")


def test_sign_transaction_aborts_on_second_frame():
    """A failure status on the first chunk stops the exchange."""
    transport = _transport(OK, b"\x69\x85", OK, OK)
    with pytest.raises(DeviceError) as exc_info:
        AptosClient(transport).sign_transaction(PATH, b"\x00" * 600)
    assert exc_info.value.status == 0x6985
    assert transport.send.call_count == 2


def test_sign_transaction_aborts_on_path_frame():
    transport = _transport(b"\x55\x15")
    with pytest.raises(DeviceError):
        AptosClient(transport).sign_transaction(PATH, b"\x00" * 10)
    assert transport.send.call_count == 1


def test_sign_transaction_truncated_signature():
    transport = _transport(OK, bytes([64]) + b"\x00" * 10 + OK)
    with pytest.raises(ProtocolError):
        AptosClient(transport).sign_transaction(PATH, b"\x00")


def test_transport_error_propagates_unchanged():
    transport = MagicMock()
    error = TransportError("unplugged")
    transport.send.side_effect = error
    with pytest.raises(TransportError) as exc_info:
        AptosClient(transport).get_version()
    assert exc_info.value is error


def test_session_state_transitions():
    transport = _transport(OK, OK, bytes([1, 0x01]) + OK)
    session = SignTransactionSession(transport, parse_path(PATH), b"\x00" * 300)
    assert session.state is SignState.IDLE
    assert session.frames_remaining == 2

    session.send_path()
    assert session.state is SignState.PATH_SENT
    session.send_chunk()
    assert session.state is SignState.TX_CHUNK
    session.send_chunk()
    assert session.state is SignState.TX_SENT
    assert session.signature.signature == b"\x01"


def test_session_aborts_and_refuses_resume():
    transport = _transport(OK, b"\x6A\x80")
    session = SignTransactionSession(transport, parse_path(PATH), b"\x00" * 300)
    session.send_path()
    with pytest.raises(DeviceError):
        session.send_chunk()
    assert session.state is SignState.ABORTED
    with pytest.raises(ProtocolError):
        session.send_chunk()
    assert transport.send.call_count == 2


def test_session_rejects_chunk_before_path():
    session = SignTransactionSession(MagicMock(), parse_path(PATH), b"")
    with pytest.raises(ProtocolError):
        session.send_chunk()


def test_concurrent_operation_is_rejected():
    """A second call while one is in flight fails without sending."""
    started = threading.Event()
    release = threading.Event()
    transport = MagicMock()

    def slow_send(*args):
        started.set()
        release.wait(5)
        return b"\x01\x02\x03" + OK

    transport.send.side_effect = slow_send
    client = AptosClient(transport)

    worker = threading.Thread(target=client.get_version)
    worker.start()
    try:
        assert started.wait(5)
        with pytest.raises(DeviceBusyError):
            client.get_address(PATH)
    finally:
        release.set()
        worker.join(5)

    assert transport.send.call_count == 1
    # The lock is released once the first call completes
    transport.send.side_effect = None
    transport.send.return_value = b"\x01\x02\x03" + OK
    assert client.get_version().version == "1.2.3"


def test_sign_transaction_too_many_frames_sends_nothing():
    """A transaction overflowing the p1 counter fails before any exchange."""
    transport = _transport()
    with pytest.raises(EncodingError):
        AptosClient(transport).sign_transaction(PATH, bytes(255 * 255 + 1))
    transport.send.assert_not_called()


def test_get_address_with_raw_indices():
    body = bytes([33, 0x20]) + b"\x01" * 32 + b"\x00"
    transport = _transport(body + OK)
    AptosClient(transport).get_address([0x8000002C, 0x8000027D, 0, 0, 0])
    assert _sent(transport)[0][4] == encode_path(parse_path(PATH))
