"""Snapshot/restore of miner and validator state between the two phases.

Store layout (one key-value namespace, four disjoint key prefixes):

    0x01                 validator singleton
    0x10                 miner singleton (without its collections)
    0x20 + file id       file record, value = UTF-8 path
    0x30 + statement id  statement record, value = canonical JSON

Step1 clears all four namespaces, then writes everything once. Step2 only
reads. Singletons are written after the per-item records they depend on,
inside one transaction, so a failed write never leaves a half snapshot that
step2 would accept.
"""

import base64
import logging
from typing import Dict

from pydantic import ValidationError

from porepbench.errors import RecordNotFoundError, StoreError
from porepbench.kernel.protocol import Statement, b64
from porepbench.kernel.validator import Validator
from porepbench.prover.miner import Miner, MinerStorage
from .canonical_json import canonical_bytes
from .store import KVStore

logger = logging.getLogger(__name__)

VALIDATOR_KEY = b"\x01"
MINER_KEY = b"\x10"
DIR_KEY = b"\x20"
STATEMENT_KEY = b"\x30"

NAMESPACES = (VALIDATOR_KEY, MINER_KEY, DIR_KEY, STATEMENT_KEY)


def get_file_key(given_id: bytes) -> bytes:
    return DIR_KEY + given_id


def get_statement_key(statement_id: bytes) -> bytes:
    return STATEMENT_KEY + statement_id


def clean_store(store: KVStore) -> None:
    """Remove every record of a previous run. Safe to call repeatedly."""
    removed = 0
    with store.transaction():
        for prefix in NAMESPACES:
            removed += store.delete_prefix(prefix)
    logger.info("Cleaned store %s (%d record(s) removed)", store.path, removed)


def save_miner(store: KVStore, miner: Miner) -> None:
    with store.transaction():
        for key, path in miner.store.file_db.items():
            store.put(get_file_key(base64.b64decode(key)), path.encode("utf-8"))
        for st in miner.store.statement_db.values():
            store.put(get_statement_key(st.id), canonical_bytes(st.model_dump(mode="json")))
        store.put(MINER_KEY, canonical_bytes(miner.model_dump(mode="json", exclude={"store"})))
    logger.info(
        "Saved miner %d (%d file record(s), %d statement record(s))",
        miner.miner_id,
        len(miner.store.file_db),
        len(miner.store.statement_db),
    )


def save_validator(store: KVStore, validator: Validator) -> None:
    store.put(VALIDATOR_KEY, canonical_bytes(validator.model_dump(mode="json")))


def load_miner(store: KVStore) -> Miner:
    value = store.get(MINER_KEY)
    if value is None:
        raise RecordNotFoundError(f"get miner error: no miner record in store {store.path}")
    try:
        miner = Miner.model_validate_json(value)
        # collections come only from their own records, never from defaults
        file_db: Dict[str, str] = {}
        for key, path in store.iter_prefix(DIR_KEY):
            file_db[b64(key[len(DIR_KEY):])] = path.decode("utf-8")
        statement_db: Dict[str, Statement] = {}
        for key, raw in store.iter_prefix(STATEMENT_KEY):
            statement_db[b64(key[len(STATEMENT_KEY):])] = Statement.model_validate_json(raw)
    except (ValidationError, UnicodeDecodeError) as e:
        raise StoreError(f"corrupt miner snapshot in store {store.path}: {e}") from e

    miner.store = MinerStorage(file_db=file_db, statement_db=statement_db)
    return miner


def load_validator(store: KVStore) -> Validator:
    value = store.get(VALIDATOR_KEY)
    if value is None:
        raise RecordNotFoundError(f"get validator error: no validator record in store {store.path}")
    try:
        return Validator.model_validate_json(value)
    except ValidationError as e:
        raise StoreError(f"corrupt validator snapshot in store {store.path}: {e}") from e
