from __future__ import annotations

import imaplib
import socket
import threading
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from mailboard.application.ports.mailbox import Mailbox, RawEmail
from mailboard.domain.errors import MailboxError

SEEN_FLAG = "\\Seen"


@dataclass
class ImapConfig:
    host: str
    user: str
    password: str = field(repr=False)
    port: int = 993
    folder: str = "INBOX"
    timeout_seconds: float = 30.0


class ImapMailbox(Mailbox):
    """One IMAP connection shared by every tenant's poller.

    All commands run under a lock since pollers call in from worker threads.
    A dropped connection is thrown away and reopened on the next call.
    """

    def __init__(self, cfg: ImapConfig) -> None:
        self.cfg = cfg
        self._conn: Optional[imaplib.IMAP4_SSL] = None
        self._lock = threading.Lock()

    def _connect(self) -> imaplib.IMAP4_SSL:
        if self._conn is None:
            logger.info(f"Connecting to IMAP {self.cfg.host}:{self.cfg.port} as {self.cfg.user}")
            conn = imaplib.IMAP4_SSL(self.cfg.host, self.cfg.port, timeout=self.cfg.timeout_seconds)
            try:
                conn.login(self.cfg.user, self.cfg.password)
                typ, _ = conn.select(self.cfg.folder, readonly=False)
                if typ != "OK":
                    raise MailboxError(f"Failed to select folder {self.cfg.folder}")
            except (imaplib.IMAP4.error, OSError) as e:
                self._close(conn)
                raise MailboxError("IMAP login failed", context={"host": self.cfg.host, "error": str(e)}) from e
            except MailboxError:
                self._close(conn)
                raise
            self._conn = conn
            logger.info(f"IMAP connected, folder {self.cfg.folder} selected")
        return self._conn

    @staticmethod
    def _close(conn: imaplib.IMAP4_SSL) -> None:
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass

    def disconnect(self) -> None:
        with self._lock:
            if self._conn:
                self._close(self._conn)
                self._conn = None

    def _drop(self) -> None:
        if self._conn is not None:
            self._close(self._conn)
        self._conn = None

    def list_unseen(self) -> list[RawEmail]:
        """Fetch every unseen message without setting \\Seen."""
        with self._lock:
            try:
                return self._list_unseen(self._connect())
            except (imaplib.IMAP4.abort, socket.timeout, OSError) as e:
                self._drop()
                raise MailboxError("IMAP connection lost during search", context={"error": str(e)}) from e
            except imaplib.IMAP4.error as e:
                raise MailboxError("IMAP search failed", context={"error": str(e)}) from e

    def _list_unseen(self, conn: imaplib.IMAP4_SSL) -> list[RawEmail]:
        # NOOP lets the server report mail that arrived since the last poll
        conn.noop()
        typ, uids_data = conn.uid("SEARCH", None, "UNSEEN")
        if typ != "OK":
            raise MailboxError("UID SEARCH failed")

        uids: list[str] = []
        if uids_data and uids_data[0]:
            uids = [x.decode() for x in uids_data[0].split()]

        logger.debug(f"Found {len(uids)} unseen emails in {self.cfg.folder}")

        results: list[RawEmail] = []
        for uid in uids:
            # BODY.PEEK leaves \Seen alone; acknowledging is a separate step
            typ, msg_data = conn.uid("FETCH", uid, "(BODY.PEEK[])")
            if typ != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                logger.warning(f"Could not fetch UID {uid}, skipping this poll")
                continue

            results.append(
                RawEmail(
                    provider="imap",
                    account=self.cfg.user,
                    folder=self.cfg.folder,
                    uid=uid,
                    rfc822_bytes=msg_data[0][1],
                )
            )

        return results

    def mark_seen(self, uid: str) -> None:
        with self._lock:
            try:
                typ, _ = self._connect().uid("STORE", str(uid), "+FLAGS", f"({SEEN_FLAG})")
            except (imaplib.IMAP4.abort, socket.timeout, OSError) as e:
                self._drop()
                raise MailboxError("IMAP connection lost while flagging", context={"uid": uid, "error": str(e)}) from e
            except imaplib.IMAP4.error as e:
                raise MailboxError("IMAP STORE failed", context={"uid": uid, "error": str(e)}) from e
            if typ != "OK":
                raise MailboxError("IMAP STORE failed", context={"uid": uid})
        logger.debug(f"Flagged UID {uid} as seen")
