"""
Transaction Signing
*******************

The device never receives the whole transaction at once.
After ``SignTx`` it asks for one input, one output or one piece of metadata at a time with ``TxRequest``,
and streams back signatures and the serialized signed transaction along the way.

:class:`Signer` answers those requests from a :class:`~trezorapi.tx.Transaction`.
Like :class:`~trezorapi.session.Session`, it returns prompts instead of calling back::

    signer = Signer(session, "Testnet")
    result = signer.run(tx, prev_txes)
    while isinstance(result, Prompt):
        result = signer.resolve(result, answer_for(result))
    print(result.serialized_tx.hex())
"""

import logging

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from google.protobuf.message import Message

from . import messages
from .errors import (
    HWWError,
    MalformedTxRequestError,
    SessionStateError,
    TxRequestInvalidIndexError,
    TxRequestUnknownTxidError,
    UnexpectedMessageError,
)
from .messages import RequestType
from .session import Prompt, Session
from .tx import Transaction, TxInput, TxOutput

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedTransaction:
    """
    Result of a signing run.

    :ivar signatures: One entry per input of the signed transaction, ``None`` for inputs the device did not sign
    :ivar serialized_tx: The signed transaction as streamed by the device
    """
    signatures: Tuple[Optional[bytes], ...]
    serialized_tx: bytes


def input_ack(txin: TxInput, current: bool) -> Message:
    """Build the ``TxInputType`` for an input, with signing details only for the transaction being signed"""
    data = messages.TxInputType(
        prev_hash=txin.prev_hash,
        prev_index=txin.prev_index,
        sequence=txin.sequence,
    )
    if not current or txin.script_sig:
        data.script_sig = txin.script_sig
    if current:
        data.address_n.extend(txin.address_n)
        data.script_type = txin.script_type
        if txin.amount is not None:
            data.amount = txin.amount
    return data


def output_ack(txout: TxOutput) -> Message:
    data = messages.TxOutputType(amount=txout.amount, script_type=txout.script_type)
    if txout.address is not None:
        data.address = txout.address
    data.address_n.extend(txout.address_n)
    if txout.op_return_data is not None:
        data.op_return_data = txout.op_return_data
    return data


def bin_output_ack(txout: TxOutput) -> Message:
    return messages.TxOutputBinType(amount=txout.amount, script_pubkey=txout.script_pubkey)


class SigningRun(object):
    """
    State of one signing run. Created by :meth:`Signer.run` and dropped when the run ends, whatever the outcome.

    :ivar request: The last ``TxRequest`` received
    :ivar served: ``(request type, tx hash, index)`` of every request answered so far
    :ivar signatures: Signatures received, by input index
    :ivar serialized: Parts of the signed transaction received so far
    """
    def __init__(self, tx: Transaction, prev_txes: Mapping[bytes, Transaction]) -> None:
        self.tx = tx
        self.prev_txes = prev_txes
        self.request: Optional[Message] = None
        self.served: List[Tuple[int, Optional[bytes], Optional[int]]] = []
        self.signatures: List[Optional[bytes]] = [None] * len(tx.inputs)
        self.serialized = bytearray()

    def absorb(self, req: Message) -> None:
        """Collect the signature and serialized data carried by a request"""
        self.request = req
        if not req.HasField("serialized"):
            return
        serialized = req.serialized
        if serialized.HasField("signature_index"):
            index = serialized.signature_index
            if index >= len(self.signatures):
                raise TxRequestInvalidIndexError("signature", index)
            self.signatures[index] = serialized.signature
            LOG.debug("received signature for input %d", index)
        if serialized.HasField("serialized_tx"):
            self.serialized.extend(serialized.serialized_tx)

    def result(self) -> SignedTransaction:
        return SignedTransaction(signatures=tuple(self.signatures), serialized_tx=bytes(self.serialized))

    def _details(self, req: Message, need_index: bool) -> Tuple[Optional[bytes], Optional[int]]:
        if not req.HasField("details"):
            raise MalformedTxRequestError("TxRequest without details")
        details = req.details
        tx_hash = details.tx_hash if details.HasField("tx_hash") else None
        if tx_hash is not None and len(tx_hash) != 32:
            raise MalformedTxRequestError("TxRequest with a tx_hash of {} bytes".format(len(tx_hash)))
        index = details.request_index if details.HasField("request_index") else None
        if need_index and index is None:
            raise MalformedTxRequestError("TxRequest without request_index")
        return tx_hash, index

    def _lookup(self, tx_hash: Optional[bytes]) -> Transaction:
        if tx_hash is None:
            return self.tx
        prev = self.prev_txes.get(tx_hash)
        if prev is None:
            raise TxRequestUnknownTxidError(tx_hash)
        return prev

    def ack(self, req: Message) -> Message:
        """
        Build the ``TxAck`` answering a request.

        The answer only depends on the request and the immutable transactions, so a repeated request gets the same answer.
        """
        if not req.HasField("request_type"):
            raise MalformedTxRequestError("TxRequest without request_type")
        request_type = req.request_type
        tx_data = messages.TransactionType()

        if request_type == RequestType.TXINPUT:
            tx_hash, index = self._details(req, need_index=True)
            assert index is not None
            tx = self._lookup(tx_hash)
            if index >= len(tx.inputs):
                raise TxRequestInvalidIndexError("input", index)
            tx_data.inputs.append(input_ack(tx.inputs[index], current=tx_hash is None))

        elif request_type == RequestType.TXOUTPUT:
            tx_hash, index = self._details(req, need_index=True)
            assert index is not None
            tx = self._lookup(tx_hash)
            if index >= len(tx.outputs):
                raise TxRequestInvalidIndexError("output", index)
            if tx_hash is None:
                tx_data.outputs.append(output_ack(tx.outputs[index]))
            else:
                tx_data.bin_outputs.append(bin_output_ack(tx.outputs[index]))

        elif request_type == RequestType.TXMETA:
            tx_hash, index = self._details(req, need_index=False)
            tx = self._lookup(tx_hash)
            tx_data.version = tx.version
            tx_data.lock_time = tx.lock_time
            tx_data.inputs_cnt = len(tx.inputs)
            tx_data.outputs_cnt = len(tx.outputs)
            if tx.extra_data:
                tx_data.extra_data_len = len(tx.extra_data)

        elif request_type == RequestType.TXEXTRADATA:
            tx_hash, index = self._details(req, need_index=False)
            details = req.details
            if not details.HasField("extra_data_offset") or not details.HasField("extra_data_len"):
                raise MalformedTxRequestError("TxRequest for extra data without offset or length")
            tx = self._lookup(tx_hash)
            offset, length = details.extra_data_offset, details.extra_data_len
            if offset + length > len(tx.extra_data):
                raise TxRequestInvalidIndexError("extra data", offset + length)
            tx_data.extra_data = tx.extra_data[offset:offset + length]

        else:
            raise MalformedTxRequestError("Unknown TxRequest type: {}".format(request_type))

        self.served.append((request_type, tx_hash, index))
        return messages.TxAck(tx=tx_data)


class Signer(object):
    """
    Drives the signing protocol over a ready :class:`~trezorapi.session.Session`.

    :param session: The session to sign with
    :param coin_name: The coin name the firmware uses, see :func:`~trezorapi.common.coin_name`
    """
    def __init__(self, session: Session, coin_name: str = "Bitcoin") -> None:
        self.session = session
        self.coin_name = coin_name
        self.current: Optional[SigningRun] = None

    def run(self, tx: Transaction, prev_txes: Optional[Mapping[bytes, Transaction]] = None) -> Union[SignedTransaction, Prompt]:
        """
        Start signing a transaction.

        :param tx: The transaction to sign
        :param prev_txes: Transactions spent by ``tx``, by txid. Needed for non-segwit inputs
        :return: The signed transaction, or a :class:`~trezorapi.session.Prompt` to pass to :meth:`resolve`
        :raises ProtocolError: if the device asked for data that does not exist. The device is sent ``Cancel`` first
        """
        if self.current is not None:
            raise SessionStateError("A signing run is in progress, resolve or cancel it first")
        prev: Dict[bytes, Transaction] = dict(prev_txes or {})
        self.current = SigningRun(tx, prev)
        LOG.info("signing transaction with %d inputs and %d outputs", len(tx.inputs), len(tx.outputs))
        msg = messages.SignTx(
            outputs_count=len(tx.outputs),
            inputs_count=len(tx.inputs),
            coin_name=self.coin_name,
            version=tx.version,
            lock_time=tx.lock_time,
        )
        return self._step(lambda: self.session.exchange(msg))

    def resolve(self, prompt: Prompt, value: object = None) -> Union[SignedTransaction, Prompt]:
        """
        Answer a prompt returned by :meth:`run` or :meth:`resolve` and continue the same run.

        :raises BadArgumentError: if the value is not a valid answer. The run and the prompt stay pending
        """
        if self.current is None:
            raise SessionStateError("No signing run in progress")
        # Nothing has been sent yet, so a bad answer can be retried
        prompt.ack(value)
        return self._step(lambda: self.session.resolve(prompt, value))

    def cancel(self) -> None:
        """Abort the run on the device and drop it"""
        self.current = None
        self.session.cancel()

    @property
    def in_progress(self) -> bool:
        return self.current is not None

    def _step(self, send: Callable[[], Union[Message, Prompt]]) -> Union[SignedTransaction, Prompt]:
        run = self.current
        assert run is not None
        try:
            resp = send()
            while True:
                if isinstance(resp, Prompt):
                    return resp
                if not isinstance(resp, messages.TxRequest):
                    raise UnexpectedMessageError(resp, "TxRequest")
                try:
                    run.absorb(resp)
                    if resp.request_type == RequestType.TXFINISHED:
                        self.current = None
                        LOG.info("signing finished, %d signatures", sum(s is not None for s in run.signatures))
                        return run.result()
                    ack = run.ack(resp)
                except HWWError:
                    self._cancel_on_device()
                    raise
                resp = self.session.exchange(ack)
        except Exception:
            self.current = None
            raise

    def _cancel_on_device(self) -> None:
        try:
            self.session.cancel()
        except HWWError as e:
            LOG.warning("cancelling the signing run failed: %s", e)
