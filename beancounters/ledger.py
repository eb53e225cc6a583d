import contextlib
import logging
import pathlib
import threading
import typing

from . import scanner
from . import synthesizer
from . import verifier
from .config import load_config
from .constants import CLEARED_FLAG
from .constants import CONFIG_FILE
from .constants import PENDING_FLAG
from .data_types import Account
from .data_types import LedgerConfig
from .data_types import Transaction
from .data_types import VerifyResult
from .errors import InvalidIdentifierError
from .identifiers import decode_id
from .splice import FileSnapshot
from .templates import make_environment

logger = logging.getLogger(__name__)

# Every write of the process goes through this lock, so read-modify-write
# sequences on ledger files never interleave.
WRITE_LOCK = threading.Lock()


class Ledger:
    """Record-oriented access to a ledger directory.

    Reads parse the files from scratch every time and take no lock. Writes hold
    the write lock for the whole parse, splice and persist sequence.
    """

    data_dir: pathlib.Path
    config: LedgerConfig
    lock: threading.Lock

    def __init__(
        self,
        data_dir: str | pathlib.Path,
        config: LedgerConfig | None = None,
        # threading.Lock is a factory function before Python 3.13
        lock: "threading.Lock | None" = None,
    ):
        self.data_dir = pathlib.Path(data_dir)
        self.config = config if config is not None else LedgerConfig()
        self.lock = lock if lock is not None else WRITE_LOCK
        self.template_env = make_environment()

    @classmethod
    def open(
        cls, data_dir: str | pathlib.Path, config_path: str | pathlib.Path | None = None
    ) -> "Ledger":
        data_dir = pathlib.Path(data_dir)
        if config_path is None:
            config_path = data_dir / CONFIG_FILE
        return cls(data_dir=data_dir, config=load_config(pathlib.Path(config_path)))

    @property
    def root_path(self) -> pathlib.Path:
        return self.data_dir / self.config.root_file

    @property
    def accounts_path(self) -> pathlib.Path:
        return self.data_dir / self.config.accounts_file

    def check_id(self, txn_id: str) -> pathlib.Path:
        """Make sure the id points at a ledger file of this directory"""
        path_str, _ = decode_id(txn_id)
        path = pathlib.Path(path_str)
        if (
            path.resolve().parent != self.data_dir.resolve()
            or path.suffix != self.config.extension
            or path.name == self.config.root_file
        ):
            raise InvalidIdentifierError(
                f"Id {txn_id!r} does not point at a ledger file in {self.data_dir}"
            )
        return path

    @contextlib.contextmanager
    def rollback_on_error(
        self, paths: typing.Iterable[pathlib.Path], action: str
    ) -> typing.Generator[None, None, None]:
        snapshot = FileSnapshot(paths)
        try:
            yield
        except Exception:
            logger.error("Failed to %s, restoring %s files", action, len(snapshot.contents))
            snapshot.restore()
            raise

    def list_transactions(self) -> list[Transaction]:
        return scanner.list_transactions(self.data_dir, self.config)

    def add_transaction(self, txn: Transaction) -> pathlib.Path:
        with self.lock:
            return synthesizer.add_transaction(
                self.data_dir, txn, self.config, self.template_env
            )

    def delete_transaction(self, txn_id: str):
        with self.lock:
            self.check_id(txn_id)
            synthesizer.delete_transaction(txn_id)

    def update_transaction(self, txn_id: str, txn: Transaction) -> pathlib.Path:
        """Replace a transaction by deleting it and appending the new version.

        The new entry is rendered and validated before the ledger is touched, and
        all affected files are restored if any step fails.
        """
        entry = synthesizer.render_transaction(txn, self.config, self.template_env)
        with self.lock:
            path = self.check_id(txn_id)
            target = self.data_dir / entry.file_name
            with self.rollback_on_error(
                [path, target, self.root_path], f"update transaction {txn_id}"
            ):
                synthesizer.delete_transaction(txn_id)
                synthesizer.append_entry(self.data_dir, entry, self.config)
            logger.info("Updated transaction %s into %s", txn_id, target)
            return target

    def clear_transaction(self, txn_id: str):
        with self.lock:
            self.check_id(txn_id)
            synthesizer.set_transaction_flag(txn_id, CLEARED_FLAG)

    def unclear_transaction(self, txn_id: str):
        with self.lock:
            self.check_id(txn_id)
            synthesizer.set_transaction_flag(txn_id, PENDING_FLAG)

    def list_accounts(self) -> list[Account]:
        return scanner.list_accounts(self.data_dir, self.config)

    def add_account(self, account: Account):
        with self.lock:
            synthesizer.add_account(self.data_dir, account, self.config)

    def update_account(self, name: str, account: Account):
        # validate before touching anything
        synthesizer.account_to_text(account)
        with self.lock:
            with self.rollback_on_error(
                [self.accounts_path, self.root_path], f"update account {name}"
            ):
                synthesizer.delete_account(self.data_dir, name, self.config)
                synthesizer.add_account(self.data_dir, account, self.config)
            logger.info("Updated account %s", name)

    def delete_account(self, name: str):
        with self.lock:
            synthesizer.delete_account(self.data_dir, name, self.config)

    def close_account(self, name: str, date: str):
        with self.lock:
            synthesizer.close_account(self.data_dir, name, date, self.config)

    def verify(self) -> VerifyResult:
        return verifier.verify(self.data_dir, self.config)
