from mailboard.infrastructure.email.providers.imap.client import ImapConfig, ImapMailbox

__all__ = ["ImapConfig", "ImapMailbox"]
